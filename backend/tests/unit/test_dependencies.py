"""Unit tests for dependencies module."""

import pytest
from unittest.mock import Mock, AsyncMock
from datetime import timedelta
from uuid import uuid4

from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from budget_keeper.core.security import create_access_token
from budget_keeper.dependencies import get_current_user
from budget_keeper.models.user import User


def _credentials(token: str):
    creds = Mock(spec=HTTPAuthorizationCredentials)
    creds.credentials = token
    return creds


def _db_returning(user):
    db = AsyncMock(spec=AsyncSession)
    result = Mock()
    result.scalar_one_or_none.return_value = user
    db.execute.return_value = result
    return db


@pytest.mark.unit
class TestGetCurrentUser:
    """Test get_current_user dependency."""

    @pytest.mark.asyncio
    async def test_returns_active_user(self):
        user = Mock(spec=User)
        user.id = uuid4()
        user.is_active = True
        token = create_access_token({"sub": str(user.id)})

        result = await get_current_user(_credentials(token), _db_returning(user))

        assert result is user

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(None, _db_returning(None))

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self):
        token = create_access_token({"sub": str(uuid4())}, expires_delta=timedelta(minutes=-5))

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_credentials(token), _db_returning(None))

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_subject_must_be_uuid(self):
        token = create_access_token({"sub": "not-a-uuid"})

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_credentials(token), _db_returning(None))

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user(self):
        token = create_access_token({"sub": str(uuid4())})

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_credentials(token), _db_returning(None))

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_user(self):
        user = Mock(spec=User)
        user.id = uuid4()
        user.is_active = False
        token = create_access_token({"sub": str(user.id)})

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_credentials(token), _db_returning(user))

        assert exc_info.value.status_code == 403
