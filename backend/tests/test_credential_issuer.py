"""
Tests for the credential cache and issuer
"""

import asyncio

import pytest

from song_library.core.exceptions import (
    AuthenticationFailed,
    CredentialRejected,
    InvalidRequest,
    ObjectNotFound,
)
from song_library.services.credentials import Credential, CredentialCache


# ============================================================================
# CREDENTIAL CACHE
# ============================================================================

def test_empty_cache(clock):
    cache = CredentialCache(clock=clock)

    assert cache.get() is None
    assert cache.state == "unauthenticated"


def test_expiry(clock):
    cache = CredentialCache(clock=clock)
    cache.put(Credential.issue("t", "https://api", "https://dl", 60, clock()))

    assert cache.get() is not None
    clock.advance(59)
    assert cache.state == "authenticated"
    clock.advance(1)
    assert cache.get() is None


def test_token_hidden_from_repr(clock):
    credential = Credential.issue("secret-token", "https://api", "https://dl", 60, clock())

    assert "secret-token" not in repr(credential)


# ============================================================================
# ENSURE CREDENTIAL
# ============================================================================

@pytest.mark.asyncio
async def test_authorizes_once(issuer, fake_backend):
    first = await issuer.ensure_credential()
    second = await issuer.ensure_credential()

    assert fake_backend.authorize_calls == 1
    assert first is second
    assert issuer.state == "authenticated"


@pytest.mark.asyncio
async def test_refreshes_after_expiry(issuer, fake_backend, clock):
    first = await issuer.ensure_credential()
    clock.advance(3600)
    second = await issuer.ensure_credential()

    assert fake_backend.authorize_calls == 2
    assert second.token != first.token
    assert second.issued_at == clock()


@pytest.mark.asyncio
async def test_authentication_failure_propagates(issuer, fake_backend):
    fake_backend.fail_authorize = True

    with pytest.raises(AuthenticationFailed):
        await issuer.ensure_credential()
    assert issuer.state == "unauthenticated"


@pytest.mark.asyncio
async def test_last_error_cleared_by_successful_authorization(issuer, fake_backend):
    fake_backend.fail_authorize = True
    with pytest.raises(AuthenticationFailed):
        await issuer.ensure_credential()
    assert issuer.last_error == "Storage authentication failed"

    fake_backend.fail_authorize = False
    await issuer.ensure_credential()

    assert issuer.last_error is None


@pytest.mark.asyncio
async def test_concurrent_callers_get_valid_credentials(issuer, fake_backend, clock):
    results = await asyncio.gather(*(issuer.ensure_credential() for _ in range(5)))

    assert all(not c.is_expired(clock()) for c in results)
    assert 1 <= fake_backend.authorize_calls <= 5


# ============================================================================
# RUN
# ============================================================================

@pytest.mark.asyncio
async def test_retries_once_on_rejected_credential(issuer, fake_backend):
    await issuer.ensure_credential()
    fake_backend.reject_tokens.add("token-1")

    objects = await issuer.run(lambda c: fake_backend.list_objects(c))

    assert len(objects) == 4
    assert fake_backend.authorize_calls == 2


@pytest.mark.asyncio
async def test_gives_up_after_second_rejection(issuer, fake_backend):
    fake_backend.reject_tokens.update({"token-1", "token-2"})

    with pytest.raises(CredentialRejected):
        await issuer.run(lambda c: fake_backend.list_objects(c))
    assert fake_backend.authorize_calls == 2


@pytest.mark.asyncio
async def test_other_errors_not_retried(issuer, fake_backend):
    with pytest.raises(ObjectNotFound):
        await issuer.run(lambda c: fake_backend.delete_object(c, "missing.mp3"))
    assert fake_backend.authorize_calls == 1


# ============================================================================
# ISSUE ACCESS URL
# ============================================================================

@pytest.mark.asyncio
async def test_signed_url(issuer, clock):
    signed = await issuer.issue_access_url("jazz/a.mp3", 3600)

    assert signed.key == "jazz/a.mp3"
    assert "jazz/a.mp3" in signed.url
    assert "Authorization=token-1" in signed.url
    assert signed.expires_at == int(clock().timestamp() * 1000) + 3600 * 1000


@pytest.mark.asyncio
async def test_key_is_quoted(issuer):
    signed = await issuer.issue_access_url("jazz/my song.mp3", 60)

    assert "jazz/my%20song.mp3" in signed.url


@pytest.mark.asyncio
async def test_serializes_expires_at(issuer):
    signed = await issuer.issue_access_url("a.mp3", 60)

    assert set(signed.model_dump(by_alias=True)) == {"key", "url", "expiresAt"}


@pytest.mark.asyncio
@pytest.mark.parametrize("ttl", [0, -5, 7 * 24 * 3600 + 1])
async def test_ttl_out_of_range(issuer, fake_backend, ttl):
    with pytest.raises(InvalidRequest):
        await issuer.issue_access_url("a.mp3", ttl)
    assert fake_backend.sign_calls == 0


@pytest.mark.asyncio
async def test_max_ttl_accepted(issuer):
    signed = await issuer.issue_access_url("a.mp3", 7 * 24 * 3600)

    assert signed.url


@pytest.mark.asyncio
async def test_empty_key(issuer):
    with pytest.raises(InvalidRequest):
        await issuer.issue_access_url("/", 60)


@pytest.mark.asyncio
async def test_missing_object(issuer, fake_backend):
    fake_backend.validate_existence = True

    with pytest.raises(ObjectNotFound):
        await issuer.issue_access_url("nope.mp3", 60)


@pytest.mark.asyncio
async def test_reuses_credential_across_urls(issuer, fake_backend):
    await issuer.issue_access_url("a.mp3", 60)
    await issuer.issue_access_url("b.mp3", 60)

    assert fake_backend.authorize_calls == 1
    assert fake_backend.sign_calls == 2
