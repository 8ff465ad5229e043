# トレースモジュール
# Interaction / InteractionTrace のスキーマ定義と JSON / YAML 読み書きを提供

from .parser import TraceParser, TraceValidationError
from .schema import (
    CONTROL_KEYS,
    PASSWORD_SENTINEL,
    ClickInteraction,
    Coordinates,
    Framework,
    Interaction,
    InteractionTrace,
    KeyPressInteraction,
    NavigationInteraction,
    Parameter,
    ScrollInteraction,
    SecuritySummary,
    SessionMetadata,
    SubmitInteraction,
    TypeInteraction,
    UnknownInteraction,
    WaitInteraction,
)

__all__ = [
    "CONTROL_KEYS",
    "ClickInteraction",
    "Coordinates",
    "Framework",
    "Interaction",
    "InteractionTrace",
    "KeyPressInteraction",
    "NavigationInteraction",
    "PASSWORD_SENTINEL",
    "Parameter",
    "ScrollInteraction",
    "SecuritySummary",
    "SessionMetadata",
    "SubmitInteraction",
    "TraceParser",
    "TraceValidationError",
    "TypeInteraction",
    "UnknownInteraction",
    "WaitInteraction",
]
