"""
Configuration management for the completion service and ingest limits.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class BedrockLLMConfig:
    """Configuration for Amazon Bedrock LLM service."""
    region: str
    model_id: str
    max_tokens: int
    temperature: float
    retry_attempts: int
    retry_delay: float
    timeout: int


@dataclass
class IngestConfig:
    """Size and time budget for one ingest run."""
    max_chars_per_chunk: int
    max_chunks: int
    max_workers: int
    enable_work_pass: bool
    peek_bytes: int


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    bedrock_llm: BedrockLLMConfig
    ingest: IngestConfig


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    # Bedrock configuration
    bedrock_llm_config = BedrockLLMConfig(region=os.getenv('BEDROCK_LLM_AWS_REGION', 'us-east-1'),
                                          model_id=os.getenv('BEDROCK_LLM_MODEL_ID', 'anthropic.claude-3-haiku-20240307-v1:0'),
                                          max_tokens=int(os.getenv('BEDROCK_LLM_MAX_TOKENS', '4096')),
                                          temperature=float(os.getenv('BEDROCK_LLM_TEMPERATURE', '0.2')),
                                          retry_attempts=int(os.getenv('BEDROCK_LLM_RETRY_ATTEMPTS', '3')),
                                          retry_delay=float(os.getenv('BEDROCK_LLM_RETRY_DELAY', '1.0')),
                                          timeout=int(os.getenv('BEDROCK_LLM_TIMEOUT', '60')))

    # Ingest limits (~8000 chars is roughly 2000 tokens per call)
    ingest_config = IngestConfig(max_chars_per_chunk=int(os.getenv('INGEST_MAX_CHARS_PER_CHUNK', '8000')),
                                 max_chunks=int(os.getenv('INGEST_MAX_CHUNKS', '10')),
                                 max_workers=int(os.getenv('INGEST_MAX_WORKERS', '1')),
                                 enable_work_pass=_env_flag('INGEST_ENABLE_WORK_PASS', 'true'),
                                 peek_bytes=int(os.getenv('INGEST_PEEK_BYTES', '65536')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     bedrock_llm=bedrock_llm_config,
                     ingest=ingest_config)


# Global configuration instance
config = load_config()
