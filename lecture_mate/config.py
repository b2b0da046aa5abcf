from pydantic_settings import BaseSettings

DEFAULT_HIGHLIGHT_KEYWORDS = [
    "중요", "핵심", "시험", "꼭", "반드시", "기억", "주목", "포인트",
    "정리", "요약", "결론", "강조", "특히", "주의", "필수", "중점",
]


class Settings(BaseSettings):
    # Whisper
    whisper_model: str = "small"
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"
    language: str = "ko"
    beam_size: int = 5

    # Capture
    sample_rate: int = 16000
    block_size: int = 1024
    input_device: int | None = None
    audio_dir: str | None = None

    # Level monitor
    level_fft_size: int = 256
    level_sample_interval: float = 1 / 30
    level_min_db: float = -100.0
    level_max_db: float = -30.0

    # Utterance segmentation
    silence_threshold: float = 0.01
    end_silence_seconds: float = 0.8
    max_utterance_seconds: float = 15.0
    interim_interval_seconds: float = 1.5

    # Highlighting
    highlight_keywords: list[str] = DEFAULT_HIGHLIGHT_KEYWORDS
    audio_emphasis_threshold: float = 80.0
    emphasis_min_length: int = 10
    max_keywords: int = 5
    summary_max_length: int = 100

    # Lectures
    default_title_prefix: str = "강의"
    database_path: str = "lecture_mate.db"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
