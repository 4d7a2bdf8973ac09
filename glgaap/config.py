"""
Configuration management for GLGAAP.

Handles global configuration settings such as numeric tolerance for
accounting identity checks, the fiscal calendar and entry numbering.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

logger = logging.getLogger(__name__)


@dataclass
class GLGAAPConfig:
    """
    Global configuration for GLGAAP validation and reporting.
    
    Attributes:
        numeric_tolerance: Maximum absolute difference for considering
                          amounts equal in accounting checks.
                          Default: 0 (identities must hold exactly).
        default_currency: The currency used when a ledger does not name one.
                         Default: "USD".
        fiscal_year_start_month: Calendar month (1-12) in which the
                                 fiscal year begins. Default: 1.
        entry_number_seed: Entry number handed out when a company has no
                           numbered entries yet. Default: "JE-0001".
        include_unclosed_earnings: If True, the balance sheet carries
                                   revenue minus expense that has not been
                                   closed to retained earnings as a
                                   separate equity line. Default: True.
    """
    
    numeric_tolerance: Decimal = Decimal("0")
    default_currency: str = "USD"
    fiscal_year_start_month: int = 1
    entry_number_seed: str = "JE-0001"
    include_unclosed_earnings: bool = True
    
    def __post_init__(self):
        """Normalize the tolerance and check the fiscal calendar."""
        self.numeric_tolerance = Decimal(str(self.numeric_tolerance))
        if self.numeric_tolerance < 0:
            raise ValueError(
                f"Invalid numeric tolerance: {self.numeric_tolerance}. Must be >= 0."
            )
        if not 1 <= self.fiscal_year_start_month <= 12:
            raise ValueError(
                f"Invalid fiscal year start month: {self.fiscal_year_start_month}. "
                f"Must be between 1 and 12."
            )
    
    def is_zero(self, value: Decimal) -> bool:
        """
        Check if an amount is effectively zero within tolerance.
        
        Args:
            value: The amount to check.
            
        Returns:
            True if abs(value) <= numeric_tolerance, False otherwise.
        """
        return abs(value) <= self.numeric_tolerance
    
    def is_balanced(self, value: Decimal) -> bool:
        """
        Check if a value represents a balanced state (effectively zero).
        
        This is an alias for is_zero() but with clearer semantic meaning
        when checking an accounting identity.
        
        Args:
            value: The balance delta to check.
            
        Returns:
            True if the value is within tolerance of zero.
        """
        return self.is_zero(value)


def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging for the application.
    
    Args:
        verbose: If True, sets log level to DEBUG. Otherwise, INFO.
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    
    if verbose:
        logger.debug("Verbose logging enabled")


# Global default configuration instance
default_config = GLGAAPConfig()
