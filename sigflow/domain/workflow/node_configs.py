"""
Typed node configuration for the workflow bounded context.

Each component type maps to one configuration variant. Variants are
frozen dataclasses validated on construction, so a Node never carries
a configuration its services cannot use.

Persisted documents use camelCase keys. Keys a variant does not know
are kept in ``extra`` so editor-only settings survive a round trip.
"""

import math
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Mapping

from sigflow.domain.workflow.errors import InvalidNodeConfigError
from sigflow.domain.workflow.registry import (
    AI_EVALUATOR,
    COLLECTOR_TYPES,
    END,
    START,
    get_schema,
)

MAX_SLIPPAGE_PERCENT = 100.0


def _text(key: str) -> Any:
    return field(default="", metadata={"key": key, "kind": "text"})


def _strings(key: str) -> Any:
    return field(default_factory=list, metadata={"key": key, "kind": "strings"})


def _number(key: str) -> Any:
    return field(default=None, metadata={"key": key, "kind": "number"})


def _coerce(kind: str, key: str, value: Any) -> Any:
    """Normalize a raw document value for a typed field."""
    if kind == "text":
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError(f"{key} must be a string")
        return value
    if kind == "strings":
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        if not isinstance(value, (list, tuple)) or not all(
            isinstance(item, str) for item in value
        ):
            raise ValueError(f"{key} must be a list of strings")
        return list(value)
    if kind == "number":
        if value is None or value == "":
            return None
        if isinstance(value, bool):
            raise ValueError(f"{key} must be a number")
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{key} must be a number") from exc
        if math.isnan(number) or math.isinf(number):
            raise ValueError(f"{key} must be a finite number")
        return number
    raise ValueError(f"unsupported field kind {kind}")


@dataclass(frozen=True)
class NodeConfig:
    """Base class of all configuration variants."""

    label: ClassVar[str] = "node"

    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Variant-specific checks. Raise InvalidNodeConfigError on failure."""

    def _fail(self, reason: str) -> None:
        raise InvalidNodeConfigError(self.label, reason)

    def to_mapping(self) -> dict[str, Any]:
        """Return the camelCase document form of this configuration."""
        data = dict(self.extra)
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            data[f.metadata.get("key", f.name)] = (
                list(value) if isinstance(value, list) else value
            )
        return data

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "NodeConfig":
        """Build a variant from a document mapping.

        Raises:
            InvalidNodeConfigError: If a value has the wrong shape or
                the resulting configuration is invalid.
        """
        by_key = {
            f.metadata.get("key", f.name): f
            for f in fields(cls)
            if f.name != "extra"
        }
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in mapping.items():
            f = by_key.get(key)
            if f is None:
                extra[key] = value
                continue
            try:
                known[f.name] = _coerce(f.metadata["kind"], key, value)
            except ValueError as exc:
                raise InvalidNodeConfigError(cls.label, str(exc)) from exc
        return cls(extra=extra, **known)


class _AmountLimits:
    """Shared checks for variants carrying min/max trade amounts."""

    def _check_amounts(self) -> None:
        minimum = getattr(self, "min_amount")
        maximum = getattr(self, "max_amount")
        for name, value in (("minAmount", minimum), ("maxAmount", maximum)):
            if value is not None and value < 0:
                self._fail(f"{name} must be non-negative")
        if minimum is not None and maximum is not None and minimum > maximum:
            self._fail("minAmount must not exceed maxAmount")


@dataclass(frozen=True)
class EmptyConfig(NodeConfig):
    """Configuration of flow-control nodes (no settings)."""

    label: ClassVar[str] = "flow control"


@dataclass(frozen=True)
class TwitterFeedConfig(NodeConfig):
    label: ClassVar[str] = "twitter feed"

    api_key: str = _text("apiKey")
    accounts: list[str] = _strings("accounts")
    keywords: list[str] = _strings("keywords")


@dataclass(frozen=True)
class BinanceFeedConfig(NodeConfig):
    label: ClassVar[str] = "binance feed"

    api_key: str = _text("apiKey")
    api_secret: str = _text("apiSecret")
    symbols: list[str] = _strings("symbols")


@dataclass(frozen=True)
class UniswapFeedConfig(NodeConfig):
    label: ClassVar[str] = "uniswap feed"

    rpc_endpoint: str = _text("rpcEndpoint")
    pool_address: str = _text("poolAddress")


@dataclass(frozen=True)
class CoinMarketFeedConfig(NodeConfig):
    label: ClassVar[str] = "coinmarket feed"

    api_key: str = _text("apiKey")
    symbols: list[str] = _strings("symbols")


@dataclass(frozen=True)
class EvaluatorConfig(NodeConfig):
    """AI evaluator settings.

    ``confidence_threshold`` is the minimum model confidence for a
    buy/sell strategy to be acted on; below it the evaluator holds.
    """

    label: ClassVar[str] = "AI evaluator"

    model: str = _text("model")
    api_key: str = _text("apiKey")
    prompt: str = _text("prompt")
    confidence_threshold: float | None = _number("confidenceThreshold")

    def validate(self) -> None:
        threshold = self.confidence_threshold
        if threshold is not None and not 0.0 <= threshold <= 1.0:
            self._fail("confidenceThreshold must be between 0 and 1")


@dataclass(frozen=True)
class CexExecutorConfig(_AmountLimits, NodeConfig):
    """Centralized exchange executor settings (Binance, OKX)."""

    label: ClassVar[str] = "CEX executor"

    api_key: str = _text("apiKey")
    api_secret: str = _text("apiSecret")
    passphrase: str = _text("passphrase")
    trading_pairs: list[str] = _strings("tradingPairs")
    max_amount: float | None = _number("maxAmount")
    min_amount: float | None = _number("minAmount")

    def validate(self) -> None:
        self._check_amounts()


@dataclass(frozen=True)
class ChainExecutorConfig(_AmountLimits, NodeConfig):
    """On-chain executor settings (Bitcoin, EVM, Solana)."""

    label: ClassVar[str] = "chain executor"

    rpc_endpoint: str = _text("rpcEndpoint")
    private_key: str = _text("privateKey")
    vault_address: str = _text("vaultAddress")
    dex_address: str = _text("dexAddress")
    trading_pairs: list[str] = _strings("tradingPairs")
    max_amount: float | None = _number("maxAmount")
    min_amount: float | None = _number("minAmount")
    slippage_percent: float | None = _number("slippagePercent")

    def validate(self) -> None:
        self._check_amounts()
        slippage = self.slippage_percent
        if slippage is not None and not 0.0 <= slippage <= MAX_SLIPPAGE_PERCENT:
            self._fail("slippagePercent must be between 0 and 100")


@dataclass(frozen=True)
class CollectorConfig(NodeConfig):
    label: ClassVar[str] = "result collector"

    monitor_duration: float | None = _number("monitorDuration")

    def validate(self) -> None:
        if self.monitor_duration is not None and self.monitor_duration < 0:
            self._fail("monitorDuration must be non-negative")


CONFIG_VARIANTS: dict[str, type[NodeConfig]] = {
    START: EmptyConfig,
    END: EmptyConfig,
    "TWITTER_EXTRACTOR": TwitterFeedConfig,
    "TWITTER_STREAM": TwitterFeedConfig,
    "BINANCE_EXTRACTOR": BinanceFeedConfig,
    "BINANCE_STREAM": BinanceFeedConfig,
    "UNISWAP_EXTRACTOR": UniswapFeedConfig,
    "COINMARKET_EXTRACTOR": CoinMarketFeedConfig,
    AI_EVALUATOR: EvaluatorConfig,
    "BINANCE_TRADE_EXECUTOR": CexExecutorConfig,
    "OKX_TRADE_EXECUTOR": CexExecutorConfig,
    "BITCOIN_TRADE_EXECUTOR": ChainExecutorConfig,
    "EVM_TRADE_EXECUTOR": ChainExecutorConfig,
    "SOLANA_TRADE_EXECUTOR": ChainExecutorConfig,
    **{collector: CollectorConfig for collector in COLLECTOR_TYPES},
}


def build_config(
    component_type: str, mapping: Mapping[str, Any] | None = None
) -> NodeConfig:
    """Build the typed configuration for a component type.

    Missing keys fall back to the registry defaults.

    Args:
        component_type: Registered component type id.
        mapping: Document-form configuration values, or None for defaults.

    Returns:
        A validated configuration variant.

    Raises:
        UnknownComponentTypeError: If the type is not registered.
        InvalidNodeConfigError: If the values fail validation.
    """
    schema = get_schema(component_type)
    variant = CONFIG_VARIANTS[component_type]
    merged = dict(schema.default_config)
    merged.update(mapping or {})
    try:
        return variant.from_mapping(merged)
    except InvalidNodeConfigError as exc:
        raise InvalidNodeConfigError(component_type, exc.reason) from exc


def update_config(
    component_type: str, current: NodeConfig, changes: Mapping[str, Any]
) -> NodeConfig:
    """Return a new configuration with document-form changes applied."""
    merged = current.to_mapping()
    merged.update(changes)
    return build_config(component_type, merged)
