import fnmatch

from conftest import Clock
from lnedu.services.anti_spam import (
    ALLOW,
    BLOCK,
    CHALLENGE,
    SUSPICIOUS_TTL_MS,
    AntiSpamConfig,
    AntiSpamService,
    RedisSpamStore,
    SpamSubmission,
    caps_ratio,
    has_repetitive_content,
    is_disposable_email,
    is_generic_name,
    is_suspicious_email,
)

BROWSER_UA = "Mozilla/5.0 (X11; Linux x86_64) Firefox/128.0"


def submission(**overrides) -> SpamSubmission:
    data = dict(
        ip="203.0.113.10",
        email="maria.silva@gmail.com",
        name="Maria Silva",
        subject="Dúvida sobre o curso",
        message="Gostaria de saber se o curso de metodologia tem certificado.",
        user_agent=BROWSER_UA,
    )
    data.update(overrides)
    return SpamSubmission(**data)


# -------------------- heurísticas --------------------
def test_heuristics():
    assert has_repetitive_content("money money money money hello")
    assert not has_repetitive_content("aaa aaa aaa aaa")  # palavras curtas não contam
    assert caps_ratio("HELLO WORLD") == 1.0
    assert caps_ratio("12345") == 0.0
    assert is_suspicious_email("123@gmail.com")
    assert is_suspicious_email("ab@gmail.com")
    assert not is_suspicious_email("maria.silva@gmail.com")
    assert is_generic_name("  Test ")
    assert is_generic_name("x")
    assert is_disposable_email("fulano@Mailinator.com")
    assert not is_disposable_email("sem-arroba")


# -------------------- decisão --------------------
def test_clean_message_is_allowed(spam):
    result = spam.check_message(submission())
    assert result.action == ALLOW
    assert result.is_spam is False
    assert result.confidence < 0.4


def test_honeypot_blocks_even_clean_content(spam):
    result = spam.check_message(submission(honeypot="http://spam.example"))
    assert result.action == BLOCK
    assert result.is_spam is True
    assert result.confidence == 0.9
    assert "Honeypot field filled" in result.reasons


def test_spam_keywords_block(spam):
    result = spam.check_message(submission(message="buy now act now limited time"))
    assert result.confidence == 0.8
    assert "Contains 3 spam keywords" in result.reasons
    assert result.action == BLOCK
    assert result.is_spam is True


def test_falsy_honeypot_value_still_blocks(spam):
    result = spam.check_message(submission(honeypot="0"))
    assert result.action == BLOCK
    assert "Honeypot field filled" in result.reasons
    assert spam.check_message(submission(ip="198.51.100.7", honeypot="")).action == ALLOW



def test_disposable_email_requires_challenge(spam):
    result = spam.check_message(submission(email="maria.silva@mailinator.com"))
    assert result.action == CHALLENGE
    assert result.is_spam is False
    assert 0.4 <= result.confidence < 0.7


def test_empty_user_agent_is_suspicious_only_when_present(spam):
    assert "Suspicious user agent" in spam.check_message(submission(user_agent="")).reasons
    assert "Suspicious user agent" not in spam.check_message(submission(user_agent=None, ip="203.0.113.11")).reasons


def test_confidence_is_capped(spam):
    text = "CLICK HERE FREE MONEY http://a.io http://b.io http://c.io CLICK HERE"
    result = spam.check_message(submission(subject="WINNER", message=text, email="1234@mailinator.com"))
    assert result.confidence == 1.0


def test_disabled_service_allows_everything(clock):
    service = AntiSpamService(AntiSpamConfig(enabled=False), clock=clock)
    result = service.check_message(submission(honeypot="x"))
    assert result.action == ALLOW
    assert result.confidence == 0.0


# -------------------- rate limit --------------------
def test_sixth_request_in_window_is_blocked(spam):
    for _ in range(5):
        assert spam.check_message(submission()).action == ALLOW
    result = spam.check_message(submission())
    assert result.action == BLOCK
    assert result.confidence == 0.8
    assert result.reasons[0].startswith("Rate limit exceeded")


def test_block_lifts_after_block_duration(spam, clock):
    for _ in range(6):
        spam.check_message(submission())
    clock.advance(30 * 60 * 1000)
    assert spam.check_message(submission()).action == BLOCK

    clock.advance(spam.config.rate_limiting.block_duration_ms)
    assert spam.check_message(submission()).action == ALLOW


def test_window_resets_count(spam, clock):
    for _ in range(5):
        spam.check_message(submission())
    clock.advance(spam.config.rate_limiting.window_ms + 1)
    assert spam.check_message(submission()).action == ALLOW
    assert spam.get_rate_limit_info("203.0.113.10").count == 1


def test_rate_limit_is_per_ip(spam):
    for _ in range(6):
        spam.check_message(submission())
    assert spam.check_message(submission(ip="198.51.100.7")).action == ALLOW


# -------------------- blacklist --------------------
def test_auto_blacklist_after_threshold(spam):
    for _ in range(5):
        assert spam.check_message(submission(honeypot="bot")).action == BLOCK
    assert "203.0.113.10" in spam.get_blacklist()

    result = spam.check_message(submission())
    assert result.confidence == 1.0
    assert result.reasons == ["IP address is blacklisted"]


def test_configured_blacklist_and_manual_removal(clock):
    config = AntiSpamConfig()
    config.ip_blacklist.ips = ["192.0.2.1"]
    service = AntiSpamService(config, clock=clock)

    assert service.check_message(submission(ip="192.0.2.1")).action == BLOCK
    service.remove_from_blacklist("192.0.2.1")
    assert service.check_message(submission(ip="192.0.2.1")).action == ALLOW


# -------------------- limpeza --------------------
def test_cleanup_purges_expired_state(spam, clock):
    spam.check_message(submission(honeypot="bot"))
    assert spam.get_rate_limit_info("203.0.113.10") is not None
    assert spam.get_stats()["totalSuspicious"] == 1

    cfg = spam.config.rate_limiting
    clock.advance(cfg.window_ms + cfg.block_duration_ms + 1)
    spam.cleanup()
    assert spam.get_rate_limit_info("203.0.113.10") is None
    assert spam.get_stats()["totalSuspicious"] == 1

    clock.advance(SUSPICIOUS_TTL_MS)
    spam.cleanup()
    assert spam.get_suspicious_ips() == []


def test_cleanup_timer_starts_and_stops(spam):
    spam.start_cleanup_timer(interval_seconds=60)
    assert spam._cleanup_thread is not None and spam._cleanup_thread.is_alive()
    spam.stop_cleanup_timer()
    assert spam._cleanup_thread is None


# -------------------- store no Redis --------------------
class FakeRedis:
    """O suficiente de redis-py para o RedisSpamStore, com TTL pelo relógio do teste."""

    def __init__(self, clock: Clock):
        self.clock = clock
        self.data = {}
        self.expires = {}

    def _alive(self, key):
        exp = self.expires.get(key)
        if exp is not None and self.clock() >= exp:
            self.data.pop(key, None)
            self.expires.pop(key, None)
        return key in self.data

    def pttl(self, key):
        if not self._alive(key):
            return -2
        exp = self.expires.get(key)
        return -1 if exp is None else int(exp - self.clock())

    def incr(self, key):
        self._alive(key)
        value = int(self.data.get(key, 0)) + 1
        self.data[key] = str(value)
        return value

    def pexpire(self, key, ms):
        if not self._alive(key):
            return False
        self.expires[key] = self.clock() + ms
        return True

    def set(self, key, value, px=None):
        self.data[key] = str(value)
        if px:
            self.expires[key] = self.clock() + px
        else:
            self.expires.pop(key, None)
        return True

    def get(self, key):
        return self.data.get(key) if self._alive(key) else None

    def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)
            self.expires.pop(key, None)

    def sadd(self, key, *values):
        self._alive(key)
        self.data.setdefault(key, set()).update(values)

    def sismember(self, key, value):
        return self._alive(key) and value in self.data[key]

    def srem(self, key, *values):
        if self._alive(key):
            self.data[key].difference_update(values)

    def smembers(self, key):
        return set(self.data[key]) if self._alive(key) else set()

    def scard(self, key):
        return len(self.data[key]) if self._alive(key) else 0

    def scan_iter(self, match="*"):
        return [k for k in list(self.data) if self._alive(k) and fnmatch.fnmatchcase(k, match)]


def test_redis_store_rate_limit_and_block_expiry(clock):
    redis_client = FakeRedis(clock)
    service = AntiSpamService(AntiSpamConfig(), store=RedisSpamStore(redis_client), clock=clock)

    for _ in range(5):
        assert service.check_message(submission()).action == ALLOW
    assert service.check_message(submission()).action == BLOCK
    assert "antispam:blocked:203.0.113.10" in redis_client.scan_iter("antispam:blocked:*")
    assert service.get_stats()["rateLimitedIPs"] == 1

    clock.advance(service.config.rate_limiting.block_duration_ms)
    assert service.check_message(submission()).action == ALLOW


def test_redis_store_blacklist_and_strikes(clock):
    redis_client = FakeRedis(clock)
    service = AntiSpamService(AntiSpamConfig(), store=RedisSpamStore(redis_client), clock=clock)

    for _ in range(5):
        service.check_message(submission(honeypot="bot"))
    assert service.get_blacklist() == ["203.0.113.10"]
    assert service.get_suspicious_ips() == [{"ip": "203.0.113.10", "count": 5}]

    service.remove_from_blacklist("203.0.113.10")
    assert service.get_stats()["totalBlacklisted"] == 0
