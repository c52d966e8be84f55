"""Domain errors raised by the scoring engine, the recorder and content generation.

Each error carries the HTTP status the API layer answers with and a short,
human-readable message that is safe to show to a student.
"""
from __future__ import annotations


class VocabQuestError(Exception):
	status_code: int = 500
	default_message: str = "Something went wrong"

	def __init__(self, message: str | None = None) -> None:
		self.message = message or self.default_message
		super().__init__(self.message)


class InvalidSubmission(VocabQuestError):
	status_code = 400
	default_message = "Invalid submission"


class DuplicateAttempt(VocabQuestError):
	status_code = 409
	default_message = "You have already completed this test. Only one attempt is allowed."


class Unauthorized(VocabQuestError):
	status_code = 401
	default_message = "Unauthorized"


class PersistenceError(VocabQuestError):
	status_code = 500
	default_message = "Failed to save your progress. Please try again."


class UpstreamGenerationError(VocabQuestError):
	status_code = 502
	default_message = "Content generation failed. Please try again later."


class GenerationRateLimited(UpstreamGenerationError):
	status_code = 429
	default_message = "Rate limit exceeded. Please try again later."


class GenerationQuotaExhausted(UpstreamGenerationError):
	status_code = 402
	default_message = "AI credits exhausted. Please try again once credits are added."
