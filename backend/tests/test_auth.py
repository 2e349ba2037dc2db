import unittest
from datetime import timedelta

import httpx
from jose import jwt

from whistlebox.core.config import Settings
from whistlebox.core.exceptions import UnauthorizedError
from whistlebox.services.auth import (
    ALGORITHM,
    DenyAllVerifier,
    HttpAuthVerifier,
    JwtAuthVerifier,
    build_auth_verifier,
    create_access_token,
)

SECRET = "admin-token-secret"


class TestJwtAuthVerifier(unittest.IsolatedAsyncioTestCase):

    async def test_valid_token(self):
        token = create_access_token("reviewer@example.org", SECRET)
        principal = await JwtAuthVerifier(SECRET).verify(token)
        self.assertEqual(principal.sub, "reviewer@example.org")
        self.assertEqual(principal.role, "admin")

    async def test_wrong_secret(self):
        token = create_access_token("reviewer", "someone-else")
        with self.assertRaises(UnauthorizedError):
            await JwtAuthVerifier(SECRET).verify(token)

    async def test_expired(self):
        token = create_access_token("reviewer", SECRET, expires_delta=timedelta(minutes=-1))
        with self.assertRaises(UnauthorizedError):
            await JwtAuthVerifier(SECRET).verify(token)

    async def test_non_admin_role(self):
        token = jwt.encode({"sub": "reporter", "role": "reporter"}, SECRET, algorithm=ALGORITHM)
        with self.assertRaises(UnauthorizedError):
            await JwtAuthVerifier(SECRET).verify(token)

    async def test_garbage_and_empty(self):
        for token in ("", "not.a.jwt"):
            with self.assertRaises(UnauthorizedError):
                await JwtAuthVerifier(SECRET).verify(token)


class TestHttpAuthVerifier(unittest.IsolatedAsyncioTestCase):

    def verifier(self, handler) -> HttpAuthVerifier:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpAuthVerifier("https://idp.example.org/verify", client=client)

    async def test_accepted(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"sub": "uid-1", "email": "admin@example.org"})

        verifier = self.verifier(handler)
        principal = await verifier.verify("opaque-token")
        await verifier.aclose()
        self.assertEqual(principal.sub, "uid-1")
        self.assertEqual(seen["auth"], "Bearer opaque-token")

    async def test_rejected(self):
        verifier = self.verifier(lambda request: httpx.Response(401, json={"error": "expired"}))
        with self.assertRaises(UnauthorizedError):
            await verifier.verify("opaque-token")
        await verifier.aclose()

    async def test_unreachable_fails_closed(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        verifier = self.verifier(handler)
        with self.assertRaises(UnauthorizedError):
            await verifier.verify("opaque-token")
        await verifier.aclose()

    async def test_malformed_claims(self):
        verifier = self.verifier(lambda request: httpx.Response(200, text="ok"))
        with self.assertRaises(UnauthorizedError):
            await verifier.verify("opaque-token")
        await verifier.aclose()


class TestBuildAuthVerifier(unittest.IsolatedAsyncioTestCase):

    async def test_selection(self):
        remote = build_auth_verifier(Settings(ENCRYPTION_KEY="k", AUTH_VERIFIER_URL="https://idp"))
        self.assertIsInstance(remote, HttpAuthVerifier)
        await remote.aclose()
        self.assertIsInstance(
            build_auth_verifier(Settings(ENCRYPTION_KEY="k", ADMIN_TOKEN_SECRET=SECRET)),
            JwtAuthVerifier,
        )

    async def test_nothing_configured_denies(self):
        verifier = build_auth_verifier(Settings(ENCRYPTION_KEY="k"))
        self.assertIsInstance(verifier, DenyAllVerifier)
        with self.assertRaises(UnauthorizedError):
            await verifier.verify("anything")


if __name__ == "__main__":
    unittest.main()
