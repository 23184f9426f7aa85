__version__ = "0.1.0"

from .exceptions import (
    SentenceMinerError as SentenceMinerError,
    TokenizationError as TokenizationError,
    AdmissionError as AdmissionError,
    QueueFullError as QueueFullError,
    EmptyBatchError as EmptyBatchError,
    NotFoundError as NotFoundError,
    ValidationError as ValidationError,
    WordBindingError as WordBindingError,
    TransactionConflictError as TransactionConflictError,
    DatabaseError as DatabaseError,
    ConfigError as ConfigError,
)

from .models import (
    EventType as EventType,
    Token as Token,
    Morpheme as Morpheme,
    TargetWord as TargetWord,
    Word as Word,
    Sentence as Sentence,
    MiningBatch as MiningBatch,
    SentenceEntry as SentenceEntry,
    PipelineEvent as PipelineEvent,
)

from .config import (
    MinerConfig as MinerConfig,
    load_config as load_config,
)

from .frequency import FrequencyList as FrequencyList
from .tokenizer import (
    Tokenizer as Tokenizer,
    SudachiTokenizer as SudachiTokenizer,
)

from .miner import (
    SentenceMiner as SentenceMiner,
    BindingStrategy as BindingStrategy,
    bind_first_token as bind_first_token,
    bind_target_required as bind_target_required,
)

__all__ = [
    # Entry point
    "SentenceMiner",
    # Binding policies
    "BindingStrategy",
    "bind_first_token",
    "bind_target_required",
    # Configuration
    "MinerConfig",
    "load_config",
    "FrequencyList",
    # Tokenization
    "Tokenizer",
    "SudachiTokenizer",
    # Models
    "EventType",
    "Token",
    "Morpheme",
    "TargetWord",
    "Word",
    "Sentence",
    "MiningBatch",
    "SentenceEntry",
    "PipelineEvent",
    # Exceptions
    "SentenceMinerError",
    "TokenizationError",
    "AdmissionError",
    "QueueFullError",
    "EmptyBatchError",
    "NotFoundError",
    "ValidationError",
    "WordBindingError",
    "TransactionConflictError",
    "DatabaseError",
    "ConfigError",
]
