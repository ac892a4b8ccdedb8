# backend/lnedu/services/anti_spam.py
"""
Filtro anti-spam do formulário de contato.

Cada envio recebe uma nota de 0 a 1 combinando bloqueios diretos (IP na
blacklist, honeypot preenchido), rate limit por IP, análise do conteúdo e
sinais de comportamento (user-agent, nome genérico, e-mail descartável).

    >= 0.7  -> block     (isSpam)
    >= 0.4  -> challenge (pedir CAPTCHA)
    <  0.4  -> allow

Todo block/challenge conta um "strike" para o IP; ao atingir o limite o IP
entra na blacklist. O estado fica num store plugável: MemorySpamStore
(processo local, limpeza periódica) ou RedisSpamStore (compartilhado entre
instâncias, expiração por TTL).
"""
from __future__ import annotations

import re
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Protocol

from lnedu.core.logger import get_logger

log = get_logger("anti_spam")

CLEANUP_INTERVAL_SECONDS = 5 * 60
SUSPICIOUS_TTL_MS = 24 * 60 * 60 * 1000

ALLOW = "allow"
BLOCK = "block"
CHALLENGE = "challenge"

SPAM_KEYWORDS = [
    "viagra", "casino", "lottery", "winner", "congratulations",
    "click here", "make money", "get rich", "free money",
    "limited time", "act now", "buy now", "urgent", "bitcoin",
    "cryptocurrency", "investment opportunity", "guaranteed profit",
]

SUSPICIOUS_KEYWORDS = [
    "discount", "cheap", "free", "promotion",
    "offer", "deal", "sale", "limited", "exclusive",
]

GENERIC_NAMES = {
    "test", "admin", "user", "guest", "anonymous",
    "john doe", "jane doe", "name", "firstname lastname",
    "asdf", "qwerty", "abc", "xyz",
}

DISPOSABLE_DOMAINS = {
    "10minutemail.com", "guerrillamail.com", "mailinator.com",
    "tempmail.org", "yopmail.com", "maildrop.cc",
    "0-mail.com", "1chuan.com", "1pad.de", "20minutemail.com",
    "temp-mail.org", "throwaway.email", "getnada.com",
}

SUSPICIOUS_EMAIL_PATTERNS = [
    re.compile(r"^\d+@"),         # começa com números
    re.compile(r"^[a-z]{1,3}@"),  # parte local muito curta
    re.compile(r"\d{4,}@"),       # 4+ dígitos seguidos
    re.compile(r"@\d+\."),        # domínio começando com números
]

SUSPICIOUS_USER_AGENTS = [
    re.compile(p, re.IGNORECASE)
    for p in (r"bot", r"crawler", r"spider", r"scraper", r"^$", r"curl", r"wget", r"python")
]

LINK_RE = re.compile(r"https?://\S+")


# -------------------- config --------------------
@dataclass
class RateLimitConfig:
    max_requests: int = 5
    window_ms: int = 15 * 60 * 1000
    block_duration_ms: int = 60 * 60 * 1000


@dataclass
class ContentAnalysisConfig:
    enabled: bool = True
    spam_keywords: list[str] = field(default_factory=lambda: list(SPAM_KEYWORDS))
    suspicious_keywords: list[str] = field(default_factory=lambda: list(SUSPICIOUS_KEYWORDS))
    max_link_count: int = 2
    min_message_length: int = 10
    max_message_length: int = 5000


@dataclass
class HoneypotConfig:
    enabled: bool = True
    field_name: str = "website"


@dataclass
class BlacklistConfig:
    enabled: bool = True
    ips: list[str] = field(default_factory=list)
    auto_block: bool = True
    auto_block_threshold: int = 5


@dataclass
class AntiSpamConfig:
    enabled: bool = True
    rate_limiting: RateLimitConfig = field(default_factory=RateLimitConfig)
    content_analysis: ContentAnalysisConfig = field(default_factory=ContentAnalysisConfig)
    honeypot: HoneypotConfig = field(default_factory=HoneypotConfig)
    ip_blacklist: BlacklistConfig = field(default_factory=BlacklistConfig)

    @classmethod
    def from_settings(cls, settings) -> "AntiSpamConfig":
        return cls(
            enabled=settings.ANTI_SPAM_ENABLED,
            rate_limiting=RateLimitConfig(
                max_requests=settings.RATE_LIMIT_MAX,
                window_ms=settings.RATE_LIMIT_WINDOW,
                block_duration_ms=settings.RATE_LIMIT_BLOCK_DURATION,
            ),
            honeypot=HoneypotConfig(field_name=settings.HONEYPOT_FIELD_NAME),
            ip_blacklist=BlacklistConfig(
                ips=list(settings.ANTI_SPAM_BLACKLIST),
                auto_block_threshold=settings.ANTI_SPAM_AUTOBLOCK_THRESHOLD,
            ),
        )


# -------------------- results --------------------
@dataclass
class SpamSubmission:
    ip: str
    email: str
    name: str
    message: str
    subject: str
    honeypot: str | None = None
    user_agent: str | None = None


@dataclass
class SpamCheckResult:
    is_spam: bool = False
    confidence: float = 0.0
    reasons: list[str] = field(default_factory=list)
    action: str = ALLOW

    def as_dict(self) -> dict:
        return {
            "isSpam": self.is_spam,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
            "action": self.action,
        }


@dataclass
class RateLimitInfo:
    count: int
    window_start: float
    blocked: bool
    reset_time: float


# -------------------- stores --------------------
class SpamStore(Protocol):
    def hit(self, ip: str, now: float, cfg: RateLimitConfig) -> RateLimitInfo: ...
    def rate_limit_info(self, ip: str) -> RateLimitInfo | None: ...
    def strike(self, ip: str, now: float) -> int: ...
    def suspicious(self) -> list[dict]: ...
    def is_blacklisted(self, ip: str) -> bool: ...
    def add_blacklist(self, ip: str) -> None: ...
    def remove_blacklist(self, ip: str) -> None: ...
    def blacklist(self) -> list[str]: ...
    def cleanup(self, now: float, cfg: RateLimitConfig) -> None: ...
    def stats(self) -> dict: ...


class MemorySpamStore:
    """Estado local do processo; some no restart e não é compartilhado."""

    def __init__(self) -> None:
        self._rate: dict[str, RateLimitInfo] = {}
        self._blacklist: set[str] = set()
        self._strikes: dict[str, tuple[int, float]] = {}  # ip -> (count, last_seen)
        self._lock = threading.Lock()

    def hit(self, ip: str, now: float, cfg: RateLimitConfig) -> RateLimitInfo:
        with self._lock:
            info = self._rate.get(ip)
            expired = info is not None and (
                (info.blocked and now >= info.reset_time)
                or (not info.blocked and now - info.window_start > cfg.window_ms)
            )
            if info is None or expired:
                info = RateLimitInfo(count=1, window_start=now, blocked=False, reset_time=now + cfg.window_ms)
                self._rate[ip] = info
                return replace(info)

            info.count += 1
            if not info.blocked and info.count > cfg.max_requests:
                info.blocked = True
                info.reset_time = now + cfg.block_duration_ms
            return replace(info)

    def rate_limit_info(self, ip: str) -> RateLimitInfo | None:
        with self._lock:
            info = self._rate.get(ip)
            return replace(info) if info else None

    def strike(self, ip: str, now: float) -> int:
        with self._lock:
            count, _ = self._strikes.get(ip, (0, now))
            count += 1
            self._strikes[ip] = (count, now)
            return count

    def suspicious(self) -> list[dict]:
        with self._lock:
            return [{"ip": ip, "count": count} for ip, (count, _) in self._strikes.items()]

    def is_blacklisted(self, ip: str) -> bool:
        with self._lock:
            return ip in self._blacklist

    def add_blacklist(self, ip: str) -> None:
        with self._lock:
            self._blacklist.add(ip)

    def remove_blacklist(self, ip: str) -> None:
        with self._lock:
            self._blacklist.discard(ip)

    def blacklist(self) -> list[str]:
        with self._lock:
            return sorted(self._blacklist)

    def cleanup(self, now: float, cfg: RateLimitConfig) -> None:
        expiry = cfg.window_ms + cfg.block_duration_ms
        with self._lock:
            for ip in [ip for ip, info in self._rate.items() if now - info.window_start > expiry]:
                del self._rate[ip]
            for ip in [ip for ip, (_, seen) in self._strikes.items() if now - seen > SUSPICIOUS_TTL_MS]:
                del self._strikes[ip]

    def stats(self) -> dict:
        with self._lock:
            return {
                "totalBlacklisted": len(self._blacklist),
                "totalSuspicious": len(self._strikes),
                "rateLimitedIPs": sum(1 for info in self._rate.values() if info.blocked),
            }


class RedisSpamStore:
    """
    Mesmo contrato do MemorySpamStore com contadores no Redis (INCR + PEXPIRE),
    para vários processos/instâncias enxergarem o mesmo estado. Expiração
    fica por conta do TTL, então cleanup() não faz nada.
    """

    def __init__(self, client, prefix: str = "antispam") -> None:
        self.client = client
        self.prefix = prefix

    def _key(self, *parts: str) -> str:
        return ":".join((self.prefix, *parts))

    def hit(self, ip: str, now: float, cfg: RateLimitConfig) -> RateLimitInfo:
        blocked_key = self._key("blocked", ip)
        count_key = self._key("count", ip)

        block_ttl = self.client.pttl(blocked_key)
        if block_ttl is not None and block_ttl > 0:
            return RateLimitInfo(count=cfg.max_requests + 1, window_start=now, blocked=True, reset_time=now + block_ttl)

        count = int(self.client.incr(count_key))
        if count == 1:
            self.client.pexpire(count_key, cfg.window_ms)

        if count > cfg.max_requests:
            self.client.set(blocked_key, count, px=cfg.block_duration_ms)
            # a próxima janela só começa quando o bloqueio expirar
            self.client.delete(count_key)
            return RateLimitInfo(count=count, window_start=now, blocked=True, reset_time=now + cfg.block_duration_ms)

        ttl = self.client.pttl(count_key)
        ttl = ttl if ttl and ttl > 0 else cfg.window_ms
        return RateLimitInfo(
            count=count,
            window_start=now - (cfg.window_ms - ttl),
            blocked=False,
            reset_time=now + ttl,
        )

    def rate_limit_info(self, ip: str) -> RateLimitInfo | None:
        now = time.time() * 1000
        block_ttl = self.client.pttl(self._key("blocked", ip))
        if block_ttl is not None and block_ttl > 0:
            count = int(self.client.get(self._key("blocked", ip)) or 0)
            return RateLimitInfo(count=count, window_start=now, blocked=True, reset_time=now + block_ttl)
        raw = self.client.get(self._key("count", ip))
        if raw is None:
            return None
        ttl = self.client.pttl(self._key("count", ip))
        return RateLimitInfo(count=int(raw), window_start=now, blocked=False, reset_time=now + max(ttl or 0, 0))

    def strike(self, ip: str, now: float) -> int:
        key = self._key("strikes", ip)
        count = int(self.client.incr(key))
        self.client.pexpire(key, SUSPICIOUS_TTL_MS)
        return count

    def suspicious(self) -> list[dict]:
        out = []
        prefix = self._key("strikes", "")
        for key in self.client.scan_iter(match=prefix + "*"):
            out.append({"ip": key[len(prefix):], "count": int(self.client.get(key) or 0)})
        return out

    def is_blacklisted(self, ip: str) -> bool:
        return bool(self.client.sismember(self._key("blacklist"), ip))

    def add_blacklist(self, ip: str) -> None:
        self.client.sadd(self._key("blacklist"), ip)

    def remove_blacklist(self, ip: str) -> None:
        self.client.srem(self._key("blacklist"), ip)

    def blacklist(self) -> list[str]:
        return sorted(self.client.smembers(self._key("blacklist")))

    def cleanup(self, now: float, cfg: RateLimitConfig) -> None:
        return None

    def stats(self) -> dict:
        return {
            "totalBlacklisted": int(self.client.scard(self._key("blacklist"))),
            "totalSuspicious": sum(1 for _ in self.client.scan_iter(match=self._key("strikes", "*"))),
            "rateLimitedIPs": sum(1 for _ in self.client.scan_iter(match=self._key("blocked", "*"))),
        }


# -------------------- service --------------------
def _now_ms() -> float:
    return time.time() * 1000


class AntiSpamService:
    def __init__(
        self,
        config: AntiSpamConfig,
        store: SpamStore | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.config = config
        self.store = store if store is not None else MemorySpamStore()
        self._clock = clock or _now_ms
        self._stop = threading.Event()
        self._cleanup_thread: threading.Thread | None = None

        for ip in config.ip_blacklist.ips:
            self.store.add_blacklist(ip)

    # ---------- scoring ----------
    def check_message(self, data: SpamSubmission) -> SpamCheckResult:
        result = SpamCheckResult()
        if not self.config.enabled:
            return result

        now = self._clock()

        if self.config.ip_blacklist.enabled and self.store.is_blacklisted(data.ip):
            return self._hard_block(result, 1.0, "IP address is blacklisted")

        rate = self.store.hit(data.ip, now, self.config.rate_limiting)
        if rate.blocked:
            self._record_suspicious(data.ip, now)
            return self._hard_block(result, 0.8, f"Rate limit exceeded ({rate.count} requests)")

        if self.config.honeypot.enabled and data.honeypot not in (None, ""):
            self._record_suspicious(data.ip, now)
            return self._hard_block(result, 0.9, "Honeypot field filled")

        confidence = 0.0
        if self.config.content_analysis.enabled:
            content_conf, content_reasons = self.analyze_content(data)
            confidence = max(confidence, content_conf)
            result.reasons.extend(content_reasons)

        behavior_conf, behavior_reasons = self.check_behavior(data)
        confidence = max(confidence, behavior_conf)
        result.reasons.extend(behavior_reasons)

        result.confidence = confidence
        if confidence >= 0.7:
            result.is_spam = True
            result.action = BLOCK
        elif confidence >= 0.4:
            result.action = CHALLENGE

        if result.action != ALLOW:
            self._record_suspicious(data.ip, now)
        return result

    def _hard_block(self, result: SpamCheckResult, confidence: float, reason: str) -> SpamCheckResult:
        result.is_spam = True
        result.confidence = confidence
        result.reasons.append(reason)
        result.action = BLOCK
        return result

    def analyze_content(self, data: SpamSubmission) -> tuple[float, list[str]]:
        cfg = self.config.content_analysis
        reasons: list[str] = []
        confidence = 0.0

        full_text = f"{data.subject} {data.message} {data.name}".lower()

        if len(data.message) < cfg.min_message_length:
            confidence += 0.3
            reasons.append("Message too short")
        if len(data.message) > cfg.max_message_length:
            confidence += 0.2
            reasons.append("Message too long")

        spam_hits = sum(1 for kw in cfg.spam_keywords if kw.lower() in full_text)
        if spam_hits:
            confidence += min(spam_hits * 0.3, 0.8)
            reasons.append(f"Contains {spam_hits} spam keywords")

        suspicious_hits = sum(1 for kw in cfg.suspicious_keywords if kw.lower() in full_text)
        if suspicious_hits > 2:
            confidence += 0.4
            reasons.append(f"Contains {suspicious_hits} suspicious keywords")

        links = len(LINK_RE.findall(data.message))
        if links > cfg.max_link_count:
            confidence += 0.5
            reasons.append(f"Contains {links} links (max: {cfg.max_link_count})")

        if has_repetitive_content(data.message):
            confidence += 0.4
            reasons.append("Contains repetitive content")

        if caps_ratio(data.message) > 0.7:
            confidence += 0.3
            reasons.append("Excessive use of capital letters")

        if is_suspicious_email(data.email):
            confidence += 0.3
            reasons.append("Suspicious email pattern")

        return round(min(confidence, 1.0), 2), reasons

    def check_behavior(self, data: SpamSubmission) -> tuple[float, list[str]]:
        reasons: list[str] = []
        confidence = 0.0

        if data.user_agent is not None and is_suspicious_user_agent(data.user_agent):
            confidence += 0.4
            reasons.append("Suspicious user agent")
        if is_generic_name(data.name):
            confidence += 0.2
            reasons.append("Generic or suspicious name")
        if is_disposable_email(data.email):
            confidence += 0.6
            reasons.append("Disposable email address")

        return round(min(confidence, 1.0), 2), reasons

    def _record_suspicious(self, ip: str, now: float) -> None:
        count = self.store.strike(ip, now)
        cfg = self.config.ip_blacklist
        if cfg.auto_block and count >= cfg.auto_block_threshold and not self.store.is_blacklisted(ip):
            self.store.add_blacklist(ip)
            log.warning(f"Auto-blacklisted IP {ip} after {count} suspicious activities")

    # ---------- manutenção ----------
    def cleanup(self) -> None:
        self.store.cleanup(self._clock(), self.config.rate_limiting)

    def start_cleanup_timer(self, interval_seconds: float = CLEANUP_INTERVAL_SECONDS) -> None:
        if self._cleanup_thread and self._cleanup_thread.is_alive():
            return
        self._stop.clear()
        self._cleanup_thread = threading.Thread(
            target=self._cleanup_loop, args=(interval_seconds,), name="anti-spam-cleanup", daemon=True
        )
        self._cleanup_thread.start()

    def stop_cleanup_timer(self) -> None:
        self._stop.set()
        if self._cleanup_thread:
            self._cleanup_thread.join(timeout=5)
            self._cleanup_thread = None

    def _cleanup_loop(self, interval_seconds: float) -> None:
        while not self._stop.wait(interval_seconds):
            try:
                self.cleanup()
            except Exception:
                log.exception("anti-spam cleanup falhou")

    # ---------- admin ----------
    def add_to_blacklist(self, ip: str) -> None:
        self.store.add_blacklist(ip)

    def remove_from_blacklist(self, ip: str) -> None:
        self.store.remove_blacklist(ip)

    def get_blacklist(self) -> list[str]:
        return self.store.blacklist()

    def get_rate_limit_info(self, ip: str) -> RateLimitInfo | None:
        return self.store.rate_limit_info(ip)

    def get_suspicious_ips(self) -> list[dict]:
        return self.store.suspicious()

    def get_stats(self) -> dict:
        return self.store.stats()


# -------------------- heurísticas --------------------
def has_repetitive_content(text: str) -> bool:
    words = text.lower().split()
    if not words:
        return False
    counts: dict[str, int] = {}
    for word in words:
        if len(word) > 4:
            counts[word] = counts.get(word, 0) + 1
    return any(c / len(words) > 0.3 for c in counts.values())


def caps_ratio(text: str) -> float:
    letters = re.sub(r"[^a-zA-Z]", "", text)
    if not letters:
        return 0.0
    caps = re.sub(r"[^A-Z]", "", text)
    return len(caps) / len(letters)


def is_suspicious_email(email: str) -> bool:
    return any(p.search(email) for p in SUSPICIOUS_EMAIL_PATTERNS)


def is_suspicious_user_agent(user_agent: str) -> bool:
    return any(p.search(user_agent) for p in SUSPICIOUS_USER_AGENTS)


def is_generic_name(name: str) -> bool:
    clean = name.lower().strip()
    return clean in GENERIC_NAMES or len(clean) < 2


def is_disposable_email(email: str) -> bool:
    _, _, domain = email.partition("@")
    return domain.lower() in DISPOSABLE_DOMAINS if domain else False


# -------------------- instância da aplicação --------------------
_service: AntiSpamService | None = None
_service_lock = threading.Lock()


def build_anti_spam_service(settings) -> AntiSpamService:
    config = AntiSpamConfig.from_settings(settings)
    store: SpamStore | None = None
    if settings.ANTI_SPAM_REDIS:
        from lnedu.core.cache import get_redis

        client = get_redis()
        if client is None:
            log.warning("ANTI_SPAM_REDIS=true mas REDIS_URL vazio; usando store em memória")
        else:
            store = RedisSpamStore(client)
    return AntiSpamService(config, store=store)


def get_anti_spam() -> AntiSpamService:
    global _service
    with _service_lock:
        if _service is None:
            from lnedu.core.config import settings

            _service = build_anti_spam_service(settings)
        return _service
