"""Pytest configuration and fixtures for test suite."""

import os
import sys
from pathlib import Path

import pytest

# Set test environment BEFORE any other imports
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("DB_DRIVER", "sqlite+aiosqlite")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from config.database import DatabaseSettings
from config.settings import CredentialSettings, LifecycleSettings
from database.async_engine import create_engine, init_database
from database.store import Store
from resilience.retry import ResilientExecutor, RetryConfig
from security.credentials import CredentialHasher
from services import (
    AdminService,
    OperationService,
    PartnerService,
    PreRegistrationService,
    PromotionService,
    ServiceContext,
    SupervisorService,
)


def _reset_db_modules():
    """Reset database module globals to ensure clean state."""
    import database.async_engine as module
    module._async_engine = None


@pytest.fixture(autouse=True)
def reset_database_globals():
    """Reset database module globals before and after each test."""
    _reset_db_modules()
    yield
    _reset_db_modules()


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
def db_settings(tmp_path):
    """SQLite settings pointing at a per-test database file."""
    return DatabaseSettings(driver="sqlite+aiosqlite", sqlite_path=tmp_path / "parceiros.db")


@pytest.fixture
async def engine(db_settings):
    """Engine with the full schema created."""
    engine = create_engine(db_settings)
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    return Store(engine)


# =============================================================================
# SERVICES
# =============================================================================

@pytest.fixture
def executor():
    """Executor with tiny delays so retry tests stay fast."""
    return ResilientExecutor(RetryConfig(max_attempts=2, initial_delay=0.001, attempt_timeout=5.0))


@pytest.fixture
def hasher():
    return CredentialHasher(rounds=4)


@pytest.fixture
def credential_settings():
    return CredentialSettings(bcrypt_rounds=4)


@pytest.fixture
def lifecycle_settings():
    return LifecycleSettings()


@pytest.fixture
def ctx(store, executor, hasher, credential_settings, lifecycle_settings):
    return ServiceContext(
        store=store,
        executor=executor,
        credentials=hasher,
        credential_settings=credential_settings,
        lifecycle=lifecycle_settings,
    )


@pytest.fixture
def admin_service(ctx):
    return AdminService(ctx)


@pytest.fixture
def partner_service(ctx):
    return PartnerService(ctx)


@pytest.fixture
def supervisor_service(ctx):
    return SupervisorService(ctx)


@pytest.fixture
def promotion_service(ctx):
    return PromotionService(ctx)


@pytest.fixture
def pre_registration_service(ctx):
    return PreRegistrationService(ctx)


@pytest.fixture
def operation_service(ctx):
    return OperationService(ctx)


# =============================================================================
# SAMPLE DATA
# =============================================================================

@pytest.fixture
async def admin(admin_service):
    return await admin_service.register({
        "nome": "Ana Admin",
        "email": "ana@parceiros.com.br",
        "senha": "admin-secret",
    })


@pytest.fixture
async def supervisor(supervisor_service, admin):
    return await supervisor_service.register(admin.id, {
        "nome": "Sofia Supervisora",
        "email": "sofia@parceiros.com.br",
        "senha": "supervisor-secret",
    })


@pytest.fixture
async def partner(partner_service):
    return await partner_service.register({
        "nome": "Paulo Parceiro",
        "cpf": "111.222.333-44",
        "email": "paulo@exemplo.com.br",
        "senha": "parceiro-secret",
        "resp_tipo_cnpj": "SIM",
        "resp_perfil_clientes": "SIM",
        "resp_volume_indicacoes": "1-5",
        "aceite_termos": "on",
        "aceite_lgpd": "true",
    })


@pytest.fixture
def pre_registration_payload():
    """Complete, eligible screening submission."""
    return {
        "resp_tipo_cnpj": "SIM",
        "resp_perfil_clientes": "SIM",
        "resp_volume_indicacoes": "6-20",
        "nome_completo": "Carla Candidata",
        "cpf": "555.666.777-88",
        "email": "carla@exemplo.com.br",
        "whatsapp": "(11) 98888-7777",
        "razao_social": "Carla Consultoria ME",
        "cnpj": "12.345.678/0001-90",
        "cidade": "Campinas",
        "uf": "SP",
        "aceite_termos": "sim",
        "aceite_lgpd": "1",
    }
