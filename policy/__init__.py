from policy.exception import DuplicatePolicyError, RowValidationError
from policy.model import ImportSummary, PolicyRow, RowError
from policy.pipeline import ImportPipeline
from policy.repository import PolicyRepository

__all__ = [
    'ImportPipeline',
    'PolicyRepository',
    'PolicyRow',
    'ImportSummary',
    'RowError',
    'RowValidationError',
    'DuplicatePolicyError',
]
