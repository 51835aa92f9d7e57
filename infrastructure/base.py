# ============================================================================
# BASE REPOSITORY - PURE ABSTRACT CLASS
# ============================================================================
# STATUS: Infrastructure - Repository hierarchy root
# PURPOSE: Common error handling and logging for grant and region repositories
# LAST_REVIEWED: 18 OCT 2026
# ============================================================================
"""
Base Repository - Pure Abstract Class.

Abstract base repository class that all storage-specific repositories inherit from.
Contains NO storage implementation details, only common error handling and
logging infrastructure.

Architecture:
    BaseRepository (this file - pure abstract)
        |
    Storage-specific bases (PostgreSQLRepository, in-memory store)
        |
    Domain-specific repositories (grant, region)

Exports:
    BaseRepository: Abstract base class for repositories
"""

from abc import ABC
from contextlib import contextmanager
from typing import Optional, Dict, Any
import logging

from exceptions import BusinessLogicError, ContractViolationError
from util_logger import LoggerFactory, ComponentType


# ============================================================================
# PURE BASE REPOSITORY - No storage dependencies
# ============================================================================

class BaseRepository(ABC):
    """
    Pure abstract base repository.

    Responsibilities:
    - Component logger setup
    - Consistent error logging around every storage operation

    NOT Responsible For:
    - Connection management (storage-specific subclasses)
    - Query execution (storage-specific subclasses)
    """

    def __init__(self):
        """
        Initialize base repository logging.

        Subclasses MUST call super().__init__() before any storage setup.
        """
        self.logger = LoggerFactory.create_logger(
            ComponentType.REPOSITORY,
            self.__class__.__name__
        )
        self.logger.debug(f"🏛️ {self.__class__.__name__} base initialized")

    @contextmanager
    def _error_context(self, operation: str, entity_id: Optional[str] = None):
        """
        Context manager for consistent error handling across all operations.

        Business errors (validation, not found) are expected outcomes and are
        logged at WARNING. Anything else is logged at ERROR. Every exception
        is re-raised unchanged.

        Usage:
            with self._error_context("grant revocation", grant_id):
                ...
        """
        try:
            yield

        except ContractViolationError as e:
            self.logger.error(f"❌ Contract violation during {operation}: {e}")
            raise

        except BusinessLogicError as e:
            msg = f"⚠️ {operation} rejected"
            if entity_id:
                msg += f" for {entity_id}"
            self.logger.warning(f"{msg}: {e}")
            raise

        except Exception as e:
            error_msg = f"❌ {operation} failed"
            if entity_id:
                error_msg += f" for {entity_id}"
            error_msg += f": {e}"
            self.logger.error(error_msg)
            raise

    def _log_operation_result(
        self,
        success: bool,
        operation: str,
        entity_id: str,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log operation results with consistent formatting.

        Success logs at INFO, failure at WARNING.
        """
        if success:
            msg = f"✅ {operation}: {entity_id}"
        else:
            msg = f"⚠️ {operation} failed: {entity_id}"

        if details:
            msg += f" | {details}"

        level = logging.INFO if success else logging.WARNING
        self.logger.log(level, msg)
