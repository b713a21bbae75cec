"""
Centralized error handling decorators for database operations.

Store failures are logged with context and re-raised as InfrastructureError so
the API layer can render them uniformly. Workflow errors pass through
untouched; transactional operations roll back on either.
"""
import functools
import inspect
import logging
import traceback
from typing import Any, Callable, Optional

from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
    StatementError,
    TimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InfrastructureError, WorkflowError


logger = logging.getLogger(__name__)


class DatabaseErrorHandler:
    """Centralized database error handling utilities."""

    DATABASE_EXCEPTIONS = (
        SQLAlchemyError,
        ConnectionError,
    )

    @staticmethod
    def handle_database_error(
        exc: Exception,
        operation: str,
        context: Optional[dict] = None
    ) -> str:
        """
        Log a database error with its classification.

        Args:
            exc: The exception that occurred
            operation: Description of the database operation
            context: Additional context information

        Returns:
            The logged error message
        """
        context_str = f" | Context: {context}" if context else ""

        if isinstance(exc, IntegrityError):
            error_msg = f"Database integrity error during {operation}: {str(exc)}{context_str}"
            logger.warning(error_msg)
        elif isinstance(exc, (ConnectionError, DisconnectionError)):
            error_msg = f"Database connection error during {operation}: {str(exc)}{context_str}"
            logger.error(error_msg)
        elif isinstance(exc, TimeoutError):
            error_msg = f"Database timeout during {operation}: {str(exc)}{context_str}"
            logger.warning(error_msg)
        elif isinstance(exc, OperationalError):
            error_msg = f"Database operational error during {operation}: {str(exc)}{context_str}"
            logger.error(error_msg)
        elif isinstance(exc, StatementError):
            error_msg = f"Database statement error during {operation}: {str(exc)}{context_str}"
            logger.warning(error_msg)
        else:
            error_msg = f"Unexpected database error during {operation}: {type(exc).__name__}: {str(exc)}{context_str}"
            logger.error(f"{error_msg}\nTraceback: {traceback.format_exc()}")

        return error_msg


def _find_session(args: tuple, kwargs: dict) -> Optional[AsyncSession]:
    for arg in args:
        if isinstance(arg, AsyncSession):
            return arg
    for value in kwargs.values():
        if isinstance(value, AsyncSession):
            return value
    return None


def handle_database_exceptions(operation_name: Optional[str] = None) -> Callable:
    """
    Decorator converting store failures into InfrastructureError.

    Args:
        operation_name: Name of the operation for logging (defaults to function name)

    Returns:
        Decorated coroutine function
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            operation = operation_name or getattr(func, '__name__', 'unknown')
            context = {
                "function": getattr(func, '__name__', 'unknown'),
                "args_count": len(args),
                "kwargs_keys": list(kwargs.keys()) if kwargs else []
            }

            try:
                result = await func(*args, **kwargs)
                logger.debug(f"Successfully completed {operation}")
                return result

            except WorkflowError:
                raise

            except DatabaseErrorHandler.DATABASE_EXCEPTIONS as exc:
                DatabaseErrorHandler.handle_database_error(exc, operation, context)
                raise InfrastructureError(f"Database error during {operation}") from exc

        return async_wrapper

    return decorator


def database_transaction(operation_name: Optional[str] = None) -> Callable:
    """
    Decorator committing the session on success and rolling back on any error.

    The AsyncSession is located among the positional or keyword arguments.
    """
    def decorator(func: Callable) -> Callable:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"database_transaction requires a coroutine function, got {func.__name__}")

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            operation = operation_name or getattr(func, '__name__', 'unknown')

            db_session = _find_session(args, kwargs)
            if not db_session:
                logger.warning(f"No AsyncSession found for transaction operation {operation}")
                return await func(*args, **kwargs)

            try:
                logger.debug(f"Starting database transaction for {operation}")
                result = await func(*args, **kwargs)
                await db_session.commit()
                logger.debug(f"Transaction committed for {operation}")
                return result

            except Exception:
                try:
                    await db_session.rollback()
                    logger.debug(f"Transaction rolled back for {operation}")
                except SQLAlchemyError as rollback_exc:
                    logger.error(f"Failed to rollback transaction for {operation}: {rollback_exc}")
                raise

        return async_wrapper

    return decorator


def transactional_database_operation(func=None, operation_name: Optional[str] = None) -> Callable:
    """
    Combined decorator for transactional database operations with error handling.

    Can be used with or without parentheses:
        @transactional_database_operation
        async def my_func(...): ...

        @transactional_database_operation("operation_name")
        async def my_func(...): ...
    """
    def decorator(f: Callable) -> Callable:
        transaction_decorated = database_transaction(operation_name=operation_name)(f)
        return handle_database_exceptions(operation_name=operation_name)(transaction_decorated)

    if func is None:
        return decorator
    elif callable(func):
        return decorator(func)
    else:
        # Called with string as first arg: @transactional_database_operation("name")
        return transactional_database_operation(operation_name=func)


def database_query(func=None, operation_name: Optional[str] = None) -> Callable:
    """
    Read-only counterpart of transactional_database_operation.

    Can be used with or without parentheses, like the transactional variant.
    """
    def decorator(f: Callable) -> Callable:
        return handle_database_exceptions(operation_name=operation_name)(f)

    if func is None:
        return decorator
    elif callable(func):
        return decorator(func)
    else:
        return database_query(operation_name=func)
