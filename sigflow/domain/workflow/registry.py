"""
Component registry for the workflow bounded context.

Static catalog mapping each component type to its display metadata,
palette category, execution role, port arity and the set of types it
may legally exchange data with. Built once at import time and
read-only afterwards.

This is the single source of truth for palette contents, default
configuration and connection legality.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sigflow.domain.workflow.errors import UnknownComponentTypeError


class ComponentCategory(Enum):
    """Palette grouping of component types."""

    FLOW_CONTROL = "FLOW_CONTROL"
    DATA_SOURCES = "DATA_SOURCES"
    AI_ANALYSIS = "AI_ANALYSIS"
    CEX_TRADING = "CEX_TRADING"
    DEX_TRADING = "DEX_TRADING"


CATEGORY_INFO: dict[ComponentCategory, tuple[str, str]] = {
    ComponentCategory.FLOW_CONTROL: (
        "Flow Control",
        "Components that control the workflow execution flow",
    ),
    ComponentCategory.DATA_SOURCES: (
        "Data Sources",
        "Components that fetch or stream data from external sources",
    ),
    ComponentCategory.AI_ANALYSIS: (
        "AI Analysis",
        "Components that evaluate data and produce trading strategies",
    ),
    ComponentCategory.CEX_TRADING: (
        "CEX Trading",
        "Trade executors and result collectors for centralized exchanges",
    ),
    ComponentCategory.DEX_TRADING: (
        "DEX Trading",
        "Trade executors and result collectors for on-chain venues",
    ),
}


class NodeRole(Enum):
    """Execution role of a component. Values are the category order rank."""

    START = 0
    LISTENER = 1
    EVALUATOR = 2
    EXECUTOR = 3
    COLLECTOR = 4
    END = 5


class PortMode(Enum):
    """Arity of an input or output port."""

    SINGLE = "SINGLE"
    MULTI = "MULTI"


@dataclass(frozen=True)
class ComponentSchema:
    """Static metadata describing one component type."""

    type: str
    name: str
    description: str
    category: ComponentCategory
    role: NodeRole
    input_mode: PortMode
    output_mode: PortMode
    input_connectables: frozenset[str]
    output_connectables: frozenset[str]
    default_config: dict[str, Any] = field(default_factory=dict, hash=False)

    @property
    def has_input_port(self) -> bool:
        return bool(self.input_connectables)

    @property
    def has_output_port(self) -> bool:
        return bool(self.output_connectables)


START = "START"
END = "END"

DATA_SOURCE_TYPES = (
    "TWITTER_EXTRACTOR",
    "TWITTER_STREAM",
    "BINANCE_EXTRACTOR",
    "BINANCE_STREAM",
    "UNISWAP_EXTRACTOR",
    "COINMARKET_EXTRACTOR",
)
AI_EVALUATOR = "AI_EVALUATOR"

# venue -> (executor type, collector type, palette category)
TRADING_VENUES: dict[str, tuple[str, str, ComponentCategory]] = {
    "BINANCE": (
        "BINANCE_TRADE_EXECUTOR",
        "BINANCE_RESULT_COLLECTOR",
        ComponentCategory.CEX_TRADING,
    ),
    "OKX": (
        "OKX_TRADE_EXECUTOR",
        "OKX_RESULT_COLLECTOR",
        ComponentCategory.CEX_TRADING,
    ),
    "BITCOIN": (
        "BITCOIN_TRADE_EXECUTOR",
        "BITCOIN_RESULT_COLLECTOR",
        ComponentCategory.DEX_TRADING,
    ),
    "EVM": (
        "EVM_TRADE_EXECUTOR",
        "EVM_RESULT_COLLECTOR",
        ComponentCategory.DEX_TRADING,
    ),
    "SOLANA": (
        "SOLANA_TRADE_EXECUTOR",
        "SOLANA_RESULT_COLLECTOR",
        ComponentCategory.DEX_TRADING,
    ),
}

EXECUTOR_TYPES = tuple(v[0] for v in TRADING_VENUES.values())
COLLECTOR_TYPES = tuple(v[1] for v in TRADING_VENUES.values())

_DATA_SOURCE_META: dict[str, tuple[str, str, dict[str, Any]]] = {
    "TWITTER_EXTRACTOR": (
        "Twitter Extractor",
        "Fetch tweets from specified accounts or keywords",
        {"apiKey": "", "accounts": [], "keywords": []},
    ),
    "TWITTER_STREAM": (
        "Twitter Stream",
        "Stream tweets in real time from accounts or keywords",
        {"apiKey": "", "accounts": [], "keywords": []},
    ),
    "BINANCE_EXTRACTOR": (
        "Binance Extractor",
        "Fetch market data from Binance",
        {"apiKey": "", "apiSecret": "", "symbols": []},
    ),
    "BINANCE_STREAM": (
        "Binance Stream",
        "Stream real-time market data from Binance",
        {"apiKey": "", "apiSecret": "", "symbols": []},
    ),
    "UNISWAP_EXTRACTOR": (
        "Uniswap Extractor",
        "Fetch pool data from Uniswap",
        {"rpcEndpoint": "", "poolAddress": ""},
    ),
    "COINMARKET_EXTRACTOR": (
        "CoinMarket Extractor",
        "Fetch quotes from CoinMarketCap",
        {"apiKey": "", "symbols": []},
    ),
}

_EXECUTOR_DEFAULTS: dict[str, dict[str, Any]] = {
    "BINANCE_TRADE_EXECUTOR": {
        "apiKey": "",
        "apiSecret": "",
        "tradingPairs": [],
        "maxAmount": None,
        "minAmount": None,
    },
    "OKX_TRADE_EXECUTOR": {
        "apiKey": "",
        "apiSecret": "",
        "passphrase": "",
        "tradingPairs": [],
        "maxAmount": None,
        "minAmount": None,
    },
    "BITCOIN_TRADE_EXECUTOR": {
        "rpcEndpoint": "",
        "privateKey": "",
        "maxAmount": None,
        "minAmount": None,
    },
    "EVM_TRADE_EXECUTOR": {
        "rpcEndpoint": "",
        "privateKey": "",
        "vaultAddress": "",
        "dexAddress": "",
        "tradingPairs": [],
        "maxAmount": None,
        "minAmount": None,
        "slippagePercent": None,
    },
    "SOLANA_TRADE_EXECUTOR": {
        "rpcEndpoint": "",
        "privateKey": "",
        "tradingPairs": [],
        "maxAmount": None,
        "minAmount": None,
    },
}


def _title(venue: str) -> str:
    return venue if venue in ("EVM", "OKX") else venue.capitalize()


def _build_registry() -> dict[str, ComponentSchema]:
    """Assemble the static component table."""
    registry: dict[str, ComponentSchema] = {}

    registry[START] = ComponentSchema(
        type=START,
        name="Start",
        description="Entry point of the workflow",
        category=ComponentCategory.FLOW_CONTROL,
        role=NodeRole.START,
        input_mode=PortMode.SINGLE,
        output_mode=PortMode.MULTI,
        input_connectables=frozenset(),
        output_connectables=frozenset(DATA_SOURCE_TYPES),
    )
    registry[END] = ComponentSchema(
        type=END,
        name="End",
        description="Terminal point of the workflow",
        category=ComponentCategory.FLOW_CONTROL,
        role=NodeRole.END,
        input_mode=PortMode.MULTI,
        output_mode=PortMode.SINGLE,
        input_connectables=frozenset(COLLECTOR_TYPES),
        output_connectables=frozenset(),
    )

    for type_id, (name, description, defaults) in _DATA_SOURCE_META.items():
        registry[type_id] = ComponentSchema(
            type=type_id,
            name=name,
            description=description,
            category=ComponentCategory.DATA_SOURCES,
            role=NodeRole.LISTENER,
            input_mode=PortMode.SINGLE,
            output_mode=PortMode.SINGLE,
            input_connectables=frozenset({START}),
            output_connectables=frozenset({AI_EVALUATOR}),
            default_config=defaults,
        )

    registry[AI_EVALUATOR] = ComponentSchema(
        type=AI_EVALUATOR,
        name="AI Evaluator",
        description="Evaluate incoming data and produce a trading strategy",
        category=ComponentCategory.AI_ANALYSIS,
        role=NodeRole.EVALUATOR,
        input_mode=PortMode.MULTI,
        output_mode=PortMode.MULTI,
        input_connectables=frozenset(DATA_SOURCE_TYPES),
        output_connectables=frozenset(EXECUTOR_TYPES),
        default_config={"model": "", "apiKey": "", "prompt": ""},
    )

    for venue, (executor, collector, category) in TRADING_VENUES.items():
        label = _title(venue)
        registry[executor] = ComponentSchema(
            type=executor,
            name=f"{label} Trade Executor",
            description=f"Execute trades on {label}",
            category=category,
            role=NodeRole.EXECUTOR,
            input_mode=PortMode.SINGLE,
            output_mode=PortMode.SINGLE,
            input_connectables=frozenset({AI_EVALUATOR}),
            output_connectables=frozenset({collector}),
            default_config=_EXECUTOR_DEFAULTS[executor],
        )
        registry[collector] = ComponentSchema(
            type=collector,
            name=f"{label} Result Collector",
            description=f"Monitor {label} transactions and report the outcome",
            category=category,
            role=NodeRole.COLLECTOR,
            input_mode=PortMode.SINGLE,
            output_mode=PortMode.SINGLE,
            input_connectables=frozenset({executor}),
            output_connectables=frozenset({END}),
            default_config={"monitorDuration": None},
        )

    return registry


COMPONENT_REGISTRY: dict[str, ComponentSchema] = _build_registry()


def get_schema(component_type: str) -> ComponentSchema:
    """Return the schema for a component type.

    Args:
        component_type: Registered component type id.

    Returns:
        The immutable ComponentSchema for the type.

    Raises:
        UnknownComponentTypeError: If the type is not registered.
    """
    schema = COMPONENT_REGISTRY.get(component_type)
    if schema is None:
        raise UnknownComponentTypeError(component_type)
    return schema


def all_component_types() -> list[str]:
    return list(COMPONENT_REGISTRY)


def components_by_category() -> dict[ComponentCategory, list[ComponentSchema]]:
    """Group registered schemas by palette category, in category order."""
    grouped: dict[ComponentCategory, list[ComponentSchema]] = {
        category: [] for category in ComponentCategory
    }
    for schema in COMPONENT_REGISTRY.values():
        grouped[schema.category].append(schema)
    return grouped


def default_config_for(component_type: str) -> dict[str, Any]:
    """Return a fresh copy of the default configuration for a type."""
    defaults = get_schema(component_type).default_config
    return {
        key: list(value) if isinstance(value, list) else value
        for key, value in defaults.items()
    }


def asymmetric_pairs() -> list[tuple[str, str]]:
    """List (source, target) pairs where the two schemas disagree.

    A pair is reported when the target accepts the source as input but
    the source does not list the target as output, or the reverse.
    """
    pairs: set[tuple[str, str]] = set()
    for schema in COMPONENT_REGISTRY.values():
        for source in schema.input_connectables:
            source_schema = COMPONENT_REGISTRY.get(source)
            if source_schema is None or schema.type not in source_schema.output_connectables:
                pairs.add((source, schema.type))
        for target in schema.output_connectables:
            target_schema = COMPONENT_REGISTRY.get(target)
            if target_schema is None or schema.type not in target_schema.input_connectables:
                pairs.add((schema.type, target))
    return sorted(pairs)
