"""Shared fixtures: keep the caller's DefectDojo/CI environment out of every test."""

import pytest

ENV_VARS = (
    "DEFECTDOJO_URL", "DEFECTDOJO_API_TOKEN", "PRODUCT_NAME", "PRODUCT_DESCRIPTION",
    "ENGAGEMENT_NAME", "BUILD_ID", "COMMIT_HASH", "BRANCH_TAG", "SOURCE_CODE_MANAGEMENT_URI",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
