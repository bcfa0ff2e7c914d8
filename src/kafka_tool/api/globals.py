# Global service instance
from typing import Any, Dict, Optional

from kafka_tool.service import KafkaToolService


service: Optional[KafkaToolService] = None

# Store service initialization error details
service_error: Optional[Dict[str, Any]] = None
