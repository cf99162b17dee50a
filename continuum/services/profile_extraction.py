"""
Profile Extraction Service with a general pass and a work-focused second pass.
"""

import json
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional

from ..models.core import Chunk, ExtractionResult, Profile, ProfileSchemaError
from ..utils.bedrock_llm import BedrockLLM, BedrockLLMError
from ..utils.config import IngestConfig, config
from ..utils.json_utils import load_json_object
from ..utils.logging_config import get_logger
from .chunking import plan_chunks
from .profile_merge import merge_profiles

logger = get_logger(__name__)

FOCUS_GENERAL = 'general'
FOCUS_WORK = 'work'

# Chunks mentioning any of these get the work-focused pass as well
WORK_KEYWORDS = ('startup', 'company', 'client', 'project', 'product', 'launch', 'roadmap', 'sprint', 'marketing', 'sales',
                 'business', 'revenue', '工作', '项目', '公司', '创业')

_WORK_RE = re.compile('|'.join(re.escape(word) for word in WORK_KEYWORDS), re.IGNORECASE)

PROFILE_SCHEMA = """{
  "profile": {
    "basic": {
      "name": string | null,
      "age_range": string | null,
      "location": string | null
    },
    "preferences": {
      "likes": string[],
      "dislikes": string[],
      "tone": string | null
    },
    "work": {
      "roles": string[],
      "industries": string[],
      "current_focus": string[]
    },
    "goals": {
      "short_term": string[],
      "long_term": string[]
    },
    "constraints": string[],
    "skills": string[],
    "communication_style": string[]
  }
}"""


class ProfileExtractionError(Exception):
    """Custom exception for profile extraction errors."""
    pass


@dataclass
class _Call:
    chunk: Chunk
    focus: str


def is_work_heavy(text: str) -> bool:
    """Whether a chunk talks about work, projects or business enough to deserve the work pass."""
    return bool(_WORK_RE.search(text or ''))


def _general_prompt(index: int, total: int) -> str:
    return f"""
You are a Memory Extraction Engine.

You will receive a slice (chunk) of a user's AI history.
This is chunk {index} of {total}.

Your job is to extract ONLY information that belongs in this stable identity schema:

{PROFILE_SCHEMA}

Rules:
- Use information from this chunk only.
- If something is not present in this chunk, leave it null or [].
- Do not hallucinate specific details.
- If user is clearly the same person across different mentions, treat it as the same identity.
- Respond with VALID JSON ONLY, no extra text."""


def _work_prompt(index: int, total: int) -> str:
    return f"""
You are a Work & Projects Memory Extractor.

You will receive a slice (chunk) of a user's AI history focused on work, projects, or startups.
This is chunk {index} of {total}.

Focus especially on:
- work.roles
- work.industries
- work.current_focus
- goals.short_term
- goals.long_term
- constraints related to time, money, energy
- skills that show up in a work context

Use this JSON schema:

{PROFILE_SCHEMA}

Rules:
- Only include information that is clearly about work, projects, career, or business.
- If a field is not supported by this chunk, leave it null or [].
- Respond with VALID JSON ONLY."""


class ProfileExtractionService:
    """Extract identity profile fragments from transcript chunks using Bedrock LLMs."""

    def __init__(self, llm: Optional[BedrockLLM] = None, ingest_config: Optional[IngestConfig] = None):
        """Initialize the profile extraction service.

        Args:
            llm: Completion client (a Bedrock client from config if None)
            ingest_config: Chunk and concurrency limits (global config if None)
        """
        self.llm = llm or BedrockLLM(config.bedrock_llm)
        self.settings = ingest_config or config.ingest

        logger.info('Initialized ProfileExtractionService')

    def extract(self, chunk: str, index: int, total: int, focus: str = FOCUS_GENERAL) -> Optional[Profile]:
        """One extraction call: ask the model for a profile fragment of one chunk.

        Args:
            chunk: Chunk text
            index: 1-based position of the chunk
            total: Number of chunks in the transcript
            focus: FOCUS_GENERAL or FOCUS_WORK

        Returns:
            Validated Profile fragment, or None when the call or its output is unusable
        """
        if not chunk or not chunk.strip():
            logger.warning(f'Empty chunk {index}/{total} provided for extraction')
            return None

        system_prompt = _work_prompt(index, total) if focus == FOCUS_WORK else _general_prompt(index, total)

        llm_messages = [{
            'role': 'user',
            'content': [{
                'text': f'Chunk content:\n"""{chunk}"""'
            }]
        }, {
            'role': 'assistant',
            'content': [{
                'text': '```json'
            }]
        }]

        try:
            response, _ = self.llm.generate_response(messages=llm_messages, system_prompt=system_prompt, stop_sequences=['```'])
        except BedrockLLMError as e:
            logger.error(f'LLM error during {focus} extraction of chunk {index}/{total}: {e}')
            return None

        # The response is untrusted until it fits the schema
        try:
            data = load_json_object(response)
            fragment = Profile.from_dict(data)
        except json.JSONDecodeError as e:
            logger.error(f'Failed to parse JSON for {focus} chunk {index}/{total}: {e}')
            return None
        except ProfileSchemaError as e:
            logger.error(f'Schema mismatch for {focus} chunk {index}/{total}: {e}')
            return None

        logger.debug(f'Extracted {focus} fragment from chunk {index}/{total}')
        return fragment

    def _plan_calls(self, chunks: List[Chunk]) -> List[_Call]:
        """General pass for every chunk, work pass right after it when the chunk is work-heavy."""
        calls = []
        for chunk in chunks:
            calls.append(_Call(chunk=chunk, focus=FOCUS_GENERAL))
            if self.settings.enable_work_pass and is_work_heavy(chunk.text):
                calls.append(_Call(chunk=chunk, focus=FOCUS_WORK))
        return calls

    def _run_call(self, call: _Call) -> Optional[Profile]:
        return self.extract(call.chunk.text, call.chunk.index + 1, call.chunk.total, focus=call.focus)

    def extract_from_long_text(self, raw_text: str) -> ExtractionResult:
        """Chunk a transcript, extract every chunk and merge the fragments.

        Fragments are merged in chunk order (general pass before work pass) no matter
        in which order parallel calls finish. Failed calls only lower the counts.

        Args:
            raw_text: Transcript from a parser

        Returns:
            ExtractionResult with the merged profile and coverage counts

        Raises:
            ProfileExtractionError: If the run fails for a reason other than a single call
        """
        try:
            plan = plan_chunks(raw_text, self.settings.max_chars_per_chunk, self.settings.max_chunks)
            if not plan.chunks:
                logger.warning('No text to extract from')
                return ExtractionResult(profile=Profile(), chunk_count=0, used_chunks=0, fragment_count=0, calls_attempted=0)

            calls = self._plan_calls(plan.chunks)

            if self.settings.max_workers <= 1 or len(calls) == 1:
                results = [self._run_call(call) for call in calls]
            else:
                # map() yields in submission order, which keeps the merge deterministic
                with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
                    results = list(pool.map(self._run_call, calls))

            fragments = [fragment for fragment in results if fragment is not None]
            used_chunks = len({call.chunk.index for call, fragment in zip(calls, results) if fragment is not None})

            profile = merge_profiles(fragments)

            logger.info(f'Extracted {len(fragments)}/{len(calls)} fragments from {used_chunks}/{len(plan.chunks)} chunks')
            return ExtractionResult(profile=profile,
                                    chunk_count=len(plan.chunks),
                                    used_chunks=used_chunks,
                                    fragment_count=len(fragments),
                                    calls_attempted=len(calls),
                                    truncated=plan.truncated)

        except ValueError as e:
            logger.error(f'Invalid extraction limits: {e}')
            raise ProfileExtractionError(f'Profile extraction failed: {e}')
        except Exception as e:
            logger.error(f'Unexpected error during profile extraction: {e}')
            raise ProfileExtractionError(f'Unexpected profile extraction error: {e}')
