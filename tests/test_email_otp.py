from collections import Counter

import pytest
from sqlalchemy import event, select
from sqlalchemy.exc import IntegrityError

from adopsiak.db import engine
from adopsiak.models import Verification
from adopsiak.services import background
from adopsiak.services import email_otp
from adopsiak.services.email_otp import (
    check_otp,
    generate_code,
    hash_code,
    make_identifier,
    send_otp,
)
from adopsiak.workers.verification_sweeper import sweep_expired
from tests.conftest import RecordingMailer

pytestmark = pytest.mark.asyncio


async def _send(db, mailer, otp_config, email):
    await send_otp(db, email=email, config=otp_config, mailer=mailer)
    await background.drain()
    return mailer.last_code(email.strip().lower())


async def _rows(db):
    return (await db.execute(select(Verification))).scalars().all()


async def test_send_stores_hash_under_namespaced_identifier(db, otp_config):
    mailer = RecordingMailer()
    code = await _send(db, mailer, otp_config, "a@b.com")

    rows = await _rows(db)
    assert len(rows) == 1
    row = rows[0]
    assert row.identifier == "adopsiak:a@b.com"
    assert row.value == hash_code("test-otp-secret", "a@b.com", code)
    assert code not in row.value
    assert row.expires_at - row.created_at == 10 * 60 * 1000
    assert row.created_at == row.updated_at


async def test_identifier_normalizes_email(db, otp_config):
    mailer = RecordingMailer()
    await send_otp(db, email="  Someone@Gmina.PL ", config=otp_config, mailer=mailer)
    await background.drain()

    rows = await _rows(db)
    assert [r.identifier for r in rows] == ["adopsiak:someone@gmina.pl"]
    assert mailer.sent[0][0] == "someone@gmina.pl"
    assert make_identifier("adopsiak", " X@Y.com") == "adopsiak:x@y.com"


async def test_send_then_check_succeeds_exactly_once(db, otp_config):
    mailer = RecordingMailer()
    code = await _send(db, mailer, otp_config, "a@b.com")

    assert await check_otp(db, email="a@b.com", otp=code, config=otp_config) is True
    assert await _rows(db) == []
    assert await check_otp(db, email="a@b.com", otp=code, config=otp_config) is False


async def test_check_accepts_differently_cased_email(db, otp_config):
    mailer = RecordingMailer()
    code = await _send(db, mailer, otp_config, "a@b.com")
    assert await check_otp(db, email=" A@B.COM", otp=code, config=otp_config) is True


async def test_wrong_code_fails_and_keeps_record(db, otp_config):
    mailer = RecordingMailer()
    code = await _send(db, mailer, otp_config, "a@b.com")
    wrong = f"{(int(code) + 1) % 1_000_000:06d}"

    assert await check_otp(db, email="a@b.com", otp=wrong, config=otp_config) is False
    assert len(await _rows(db)) == 1
    # the right code still works afterwards
    assert await check_otp(db, email="a@b.com", otp=code, config=otp_config) is True


async def test_unknown_email_fails(db, otp_config):
    assert await check_otp(db, email="nobody@b.com", otp="123456", config=otp_config) is False


async def test_reissue_invalidates_previous_code(db, otp_config, monkeypatch):
    mailer = RecordingMailer()
    codes = iter(["111111", "222222"])
    monkeypatch.setattr(email_otp, "generate_code", lambda: next(codes))

    first = await _send(db, mailer, otp_config, "a@b.com")
    second = await _send(db, mailer, otp_config, "a@b.com")
    assert (first, second) == ("111111", "222222")

    assert len(await _rows(db)) == 1
    assert await check_otp(db, email="a@b.com", otp=first, config=otp_config) is False
    assert await check_otp(db, email="a@b.com", otp=second, config=otp_config) is True


async def test_expired_code_fails_even_when_matching(db, otp_config, monkeypatch):
    mailer = RecordingMailer()
    issued_at = 1_700_000_000_000
    monkeypatch.setattr(email_otp, "_now_ms", lambda: issued_at)
    code = await _send(db, mailer, otp_config, "a@b.com")

    expires_at = issued_at + otp_config.expire_ms
    assert await check_otp(db, email="a@b.com", otp=code, config=otp_config, now_ms=expires_at) is False
    # the check never writes; the sweeper owns removal
    assert len(await _rows(db)) == 1
    assert await sweep_expired(db, batch=10) == 1
    assert await _rows(db) == []


async def test_every_failure_runs_the_same_statements(db, otp_config, monkeypatch):
    mailer = RecordingMailer()
    issued_at = 1_700_000_000_000
    monkeypatch.setattr(email_otp, "_now_ms", lambda: issued_at)
    code = await _send(db, mailer, otp_config, "a@b.com")
    wrong = f"{(int(code) + 1) % 1_000_000:06d}"
    live_at = issued_at + 1
    expired_at = issued_at + otp_config.expire_ms

    seen: list[str] = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        seen.append(statement.split()[0].upper())

    async def _statements(**kwargs) -> list[str]:
        seen.clear()
        assert await check_otp(db, config=otp_config, **kwargs) is False
        await db.rollback()
        return list(seen)

    event.listen(engine.sync_engine, "before_cursor_execute", _record)
    try:
        wrong_code = await _statements(email="a@b.com", otp=wrong, now_ms=live_at)
        missing = await _statements(email="ghost@b.com", otp=code, now_ms=live_at)
        expired = await _statements(email="a@b.com", otp=code, now_ms=expired_at)
    finally:
        event.remove(engine.sync_engine, "before_cursor_execute", _record)

    assert wrong_code == missing == expired == ["SELECT"]


async def test_overlapping_send_conflict_is_retried(db, otp_config, monkeypatch):
    real_replace = email_otp._replace
    calls = []

    async def _conflict_once(db, **kwargs):
        calls.append(kwargs["identifier"])
        if len(calls) == 1:
            # another request committed the same identifier between our delete and insert
            await real_replace(db, **kwargs)
            raise IntegrityError("INSERT INTO verification", {}, Exception("UNIQUE constraint failed"))
        await real_replace(db, **kwargs)

    monkeypatch.setattr(email_otp, "_replace", _conflict_once)
    mailer = RecordingMailer()
    code = await _send(db, mailer, otp_config, "a@b.com")

    assert calls == ["adopsiak:a@b.com", "adopsiak:a@b.com"]
    assert len(await _rows(db)) == 1
    assert await check_otp(db, email="a@b.com", otp=code, config=otp_config) is True


async def test_code_valid_until_just_before_expiry(db, otp_config, monkeypatch):
    mailer = RecordingMailer()
    issued_at = 1_700_000_000_000
    monkeypatch.setattr(email_otp, "_now_ms", lambda: issued_at)
    code = await _send(db, mailer, otp_config, "a@b.com")

    last_valid = issued_at + otp_config.expire_ms - 1
    assert await check_otp(db, email="a@b.com", otp=code, config=otp_config, now_ms=last_valid) is True


async def test_mail_failure_does_not_fail_issuance(db, otp_config, caplog):
    mailer = RecordingMailer(fail=True)
    await send_otp(db, email="a@b.com", config=otp_config, mailer=mailer)
    await background.drain()

    assert len(await _rows(db)) == 1
    assert any("otp-email" in r.getMessage() for r in caplog.records)


async def test_codes_are_six_ascii_digits():
    for _ in range(2000):
        code = generate_code()
        assert len(code) == 6 and code.isascii() and code.isdigit()


async def test_codes_cover_range_edges(monkeypatch):
    monkeypatch.setattr(email_otp.secrets, "randbelow", lambda n: 0)
    assert generate_code() == "000000"
    monkeypatch.setattr(email_otp.secrets, "randbelow", lambda n: n - 1)
    assert generate_code() == "999999"


async def test_codes_are_uniform_per_digit():
    trials = 100_000
    codes = [generate_code() for _ in range(trials)]
    expected = trials / 10
    for pos in (0, 5):
        counts = Counter(c[pos] for c in codes)
        assert set(counts) == set("0123456789")
        chi2 = sum((counts[d] - expected) ** 2 / expected for d in "0123456789")
        # df=9; p < 1e-5 beyond ~40
        assert chi2 < 40, (pos, counts)


async def test_hash_depends_on_secret_email_and_code():
    base = hash_code("s", "a@b.com", "123456")
    assert base == hash_code("s", " A@B.com", "123456")
    assert base != hash_code("t", "a@b.com", "123456")
    assert base != hash_code("s", "c@b.com", "123456")
    assert base != hash_code("s", "a@b.com", "123457")
