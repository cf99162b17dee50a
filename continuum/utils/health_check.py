"""
Health check utilities for the ingest core.
"""

from typing import Any, Dict, List

from .bedrock_llm import BedrockLLM
from .config import IngestConfig, config
from .logging_config import get_logger

logger = get_logger(__name__)


def _ingest_limit_problems(ingest: IngestConfig) -> List[str]:
    problems = []
    if ingest.max_chars_per_chunk <= 0:
        problems.append('INGEST_MAX_CHARS_PER_CHUNK must be positive')
    if ingest.max_chunks <= 0:
        problems.append('INGEST_MAX_CHUNKS must be positive')
    if ingest.max_workers <= 0:
        problems.append('INGEST_MAX_WORKERS must be positive')
    if ingest.peek_bytes <= 0:
        problems.append('INGEST_PEEK_BYTES must be positive')
    return problems


def check_health() -> bool:
    """Check the completion service and the configured ingest limits.

    Returns:
        True if all components are healthy, False otherwise
    """
    health_status = get_health_status()

    all_healthy = all(status.get('healthy', False) for status in health_status.values())

    if all_healthy:
        logger.info('All system components are healthy')
    else:
        logger.warning('Some system components are unhealthy')

    return all_healthy


def get_health_status() -> Dict[str, Any]:
    """Get detailed health status of the completion service and the ingest limits.

    Returns:
        Dictionary with health status of each component
    """
    health_status = {}

    # Check Bedrock LLM
    try:
        llm = BedrockLLM(config.bedrock_llm)
        health_status['bedrock_llm'] = {
            'healthy': llm.health_check(),
            'service': 'Amazon Bedrock LLM',
            'model': config.bedrock_llm.model_id
        }
    except Exception as e:
        health_status['bedrock_llm'] = {'healthy': False, 'service': 'Amazon Bedrock LLM', 'error': str(e)}

    # Limits that would make every ingest fail
    problems = _ingest_limit_problems(config.ingest)
    health_status['ingest_limits'] = {'healthy': not problems, 'problems': problems}

    return health_status


def get_system_info() -> Dict[str, Any]:
    """Get system information and configuration.

    Returns:
        Dictionary with system information
    """
    return {
        'service_name': 'Continuum',
        'version': '0.1.0',
        'configuration': {
            'bedrock_llm_model': config.bedrock_llm.model_id,
            'aws_region': config.bedrock_llm.region,
            'request_timeout_seconds': config.bedrock_llm.timeout,
            'max_chars_per_chunk': config.ingest.max_chars_per_chunk,
            'max_chunks': config.ingest.max_chunks,
            'max_workers': config.ingest.max_workers,
            'work_pass_enabled': config.ingest.enable_work_pass
        },
        'health_status': get_health_status()
    }
