import logging
import os
from typing import Optional

# Global logger instance
_logger: Optional[logging.Logger] = None

def setup_logger(name: str = 'kafka_tool') -> logging.Logger:
    """Sets up the logger if not already set up, otherwise returns the existing logger.
    
    Args:
        name: The name for the logger. Defaults to 'kafka_tool'.
    
    Returns:
        The configured logger instance.
    """
    global _logger
    if _logger is None:
        # Get log level from environment variable, default to INFO (20)
        log_level = int(os.getenv("LOG_LEVEL", "20"))
        
        _logger = logging.getLogger(name)
        _logger.setLevel(log_level)
        
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        
        formatter = logging.Formatter('%(levelname)s - %(asctime)s - %(name)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s')
        console_handler.setFormatter(formatter)
        
        _logger.addHandler(console_handler)
        
        # Prevent propagation to root logger to avoid duplicate messages
        _logger.propagate = False
        
    return _logger
