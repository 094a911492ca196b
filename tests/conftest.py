"""
Pytest configuration and shared fixtures for dbrefactor tests.
"""

from typing import Any, Dict

import pytest
import pytest_asyncio

from dbrefactor.config import DbRefactorConfig
from dbrefactor.editor import SchemaEditor
from dbrefactor.executor.client import PlanExecutorClient
from dbrefactor.plan.plan import Plan
from dbrefactor.schema.baseline import BaselineSchema


EXECUTOR_URL = "http://executor.test"


# ============================================================================
# Schema Fixtures
# ============================================================================

@pytest.fixture
def sample_schema_payload() -> Dict[str, Any]:
    """Schema source response with two related tables."""
    return {
        "tables": [
            {
                "schema": "dbo",
                "name": "Customer",
                "columns": [
                    {"name": "Id", "sqlType": "int", "isNullable": False},
                    {"name": "Name", "sqlType": "varchar", "isNullable": False},
                    {"name": "Email", "sqlType": "nvarchar(100)", "isNullable": True},
                ],
                "indexes": [
                    {"name": "PK_Customer", "isPrimary": True, "columns": ["Id"]},
                    {"name": "IX_Customer_Email", "isPrimary": False, "columns": ["Email"]},
                ],
                "foreignKeys": [],
            },
            {
                "schema": "dbo",
                "name": "Order",
                "columns": [
                    {"name": "Id", "sqlType": "int", "isNullable": False},
                    {"name": "CustomerId", "sqlType": "int", "isNullable": False},
                    {"name": "Total", "sqlType": "decimal(10, 2)", "isNullable": True},
                ],
                "indexes": [
                    {"name": "PK_Order", "isPrimary": True, "columns": ["Id"]},
                ],
                "foreignKeys": [
                    {
                        "name": "FK_Order_Customer",
                        "columnName": "CustomerId",
                        "referencesTable": "Customer",
                        "referencesColumn": "Id",
                    }
                ],
            },
        ]
    }


@pytest.fixture
def baseline_schema(sample_schema_payload) -> BaselineSchema:
    """Parsed baseline schema."""
    return BaselineSchema.from_payload(sample_schema_payload)


@pytest.fixture
def empty_plan() -> Plan:
    return Plan()


@pytest.fixture
def editor(baseline_schema) -> SchemaEditor:
    """Schema editor loaded with the sample schema."""
    return SchemaEditor(baseline_schema)


# ============================================================================
# Executor Fixtures
# ============================================================================

@pytest.fixture
def executor_url() -> str:
    return EXECUTOR_URL


@pytest.fixture
def app_config() -> DbRefactorConfig:
    """Configuration pointing at the test executor."""
    return DbRefactorConfig(
        executor={"endpoint": EXECUTOR_URL, "timeout": 5},
        codefix={"root_key": "SOLUTION"},
    )


@pytest_asyncio.fixture
async def executor_client(app_config):
    """Executor client that is closed after the test."""
    client = PlanExecutorClient.from_config(app_config)
    yield client
    await client.close()
