"""
Pytest configuration and fixtures for all tests.

Provides scripted translation providers and a controllable clock so the
orchestrator and queue can be exercised without network access.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from localizer.errors import ErrorCategory
from localizer.policy import ErrorPolicy
from localizer.prompts import unwrap_question
from localizer.providers import TranslationProvider


class ScriptedProvider(TranslationProvider):
    """Answers from a mapping, upper-casing anything it does not know.

    Texts listed in ``failures`` raise, and the highest number of calls in
    flight at the same time is tracked in ``max_active``.
    """

    name = "scripted"

    def __init__(self, answers=None, failures=None, delays=None):
        self.answers = dict(answers or {})
        self.failures = set(failures or ())
        self.delays = dict(delays or {})
        self.calls = []
        self.system_prompts = []
        self.active = 0
        self.max_active = 0

    async def translate(self, question, system_prompt):
        text = unwrap_question(question)
        self.calls.append(text)
        self.system_prompts.append(system_prompt)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(text, 0))
            if text in self.failures:
                raise RuntimeError(f"simulated error for {text!r}")
            return self.answers.get(text, text.upper())
        finally:
            self.active -= 1


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, delay):
        self.sleeps.append(delay)
        self.now += delay


@pytest.fixture
def scripted_provider():
    return ScriptedProvider()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def error_policy():
    return ErrorPolicy()


@pytest.fixture
def translation_errors():
    """Helper to count recorded translation failures."""

    def count(policy):
        return policy.count(ErrorCategory.TRANSLATION)

    return count
