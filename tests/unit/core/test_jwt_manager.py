"""
Core - Admin Token Unit Tests
"""

from datetime import timedelta

import jwt
import pytest

from core.jwt_manager import JWTManager, TokenClaims, TokenScope

pytestmark = [pytest.mark.unit]


@pytest.fixture
def manager():
    return JWTManager(secret_key="unit-secret")


class TestVerifyToken:

    def test_admin_token(self, manager):
        token = manager.create_access_token(TokenClaims(user_id="adm_1", scope=TokenScope.ADMIN))
        check = manager.verify_token(token)
        assert check.valid
        assert check.user_id == "adm_1"
        assert check.is_admin

    def test_user_token_is_not_admin(self, manager):
        check = manager.verify_token(manager.create_access_token(TokenClaims(user_id="usr_1")))
        assert check.valid
        assert check.scope == "user"
        assert not check.is_admin

    def test_expired(self, manager):
        token = manager.create_access_token(
            TokenClaims(user_id="adm_1", scope=TokenScope.ADMIN),
            expires_delta=timedelta(seconds=-5),
        )
        check = manager.verify_token(token)
        assert not check.valid
        assert check.error == "Token has expired"
        assert not check.is_admin

    def test_wrong_secret(self, manager):
        token = JWTManager(secret_key="other").create_access_token(TokenClaims(user_id="adm_1"))
        check = manager.verify_token(token)
        assert not check.valid
        assert check.error.startswith("Invalid token")

    def test_foreign_issuer(self, manager):
        token = jwt.encode({"sub": "adm_1", "scope": "admin", "iss": "elsewhere", "exp": 9999999999},
                           "unit-secret", algorithm="HS256")
        assert not manager.verify_token(token).valid

    def test_garbage(self, manager):
        assert not manager.verify_token("not-a-token").valid
