"""
Tests for admin authentication.
"""

from datetime import timedelta
from uuid import uuid4

from unittest.mock import patch

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from academy.core.auth import ADMIN_ROLE, get_current_admin_user
from academy.core.security import create_access_token, create_refresh_token


def _credentials(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


@pytest.mark.asyncio
async def test_valid_admin_token():
    admin_id = uuid4()
    token = create_access_token(
        {"sub": str(admin_id), "email": "reviewer@academy.dev", "role": ADMIN_ROLE}
    )

    admin = await get_current_admin_user(_credentials(token))

    assert admin.id == admin_id
    assert admin.email == "reviewer@academy.dev"


@pytest.mark.asyncio
async def test_non_admin_role_is_forbidden():
    token = create_access_token(
        {"sub": str(uuid4()), "email": "student@academy.dev", "role": "student"}
    )

    with pytest.raises(HTTPException) as exc_info:
        await get_current_admin_user(_credentials(token))

    assert exc_info.value.status_code == 403
    assert exc_info.value.detail["error"] == "ADMIN_ACCESS_REQUIRED"


@pytest.mark.asyncio
async def test_expired_token_is_unauthorized():
    token = create_access_token(
        {"sub": str(uuid4()), "role": ADMIN_ROLE}, expires_delta=timedelta(seconds=-5)
    )

    with pytest.raises(HTTPException) as exc_info:
        await get_current_admin_user(_credentials(token))

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail["error"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_refresh_token_is_rejected():
    token = create_refresh_token({"sub": str(uuid4()), "role": ADMIN_ROLE})

    with pytest.raises(HTTPException) as exc_info:
        await get_current_admin_user(_credentials(token))

    assert exc_info.value.detail["error"] == "INVALID_TOKEN_TYPE"


@pytest.mark.asyncio
async def test_token_without_subject_is_rejected():
    token = create_access_token({"role": ADMIN_ROLE})

    with pytest.raises(HTTPException) as exc_info:
        await get_current_admin_user(_credentials(token))

    assert exc_info.value.detail["error"] == "INVALID_TOKEN_CLAIMS"


@pytest.mark.asyncio
async def test_garbage_token_is_unauthorized():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_admin_user(_credentials("not.a.jwt"))

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_fixed_test_token_is_rejected_outside_development():
    with patch("academy.core.auth._DEVELOPMENT_MODE", False):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_admin_user(_credentials("dev-token"))

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_fixed_test_token_works_in_development():
    with patch("academy.core.auth._DEVELOPMENT_MODE", True):
        admin = await get_current_admin_user(_credentials("test-token"))

    assert admin.role == ADMIN_ROLE
