"""
Azure Document Intelligence service for OCR of PDF forms.
"""
import logging
from typing import Any, Dict, Optional

from azure.ai.documentintelligence import DocumentIntelligenceClient
from azure.ai.documentintelligence.models import DocumentAnalysisFeature
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError

from field_layout.config import Config
from field_layout.services.layout_engine.errors import DocumentUnreadable
from field_layout.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def _to_dict(result: Any) -> Dict[str, Any]:
    if isinstance(result, dict):
        return result
    if hasattr(result, "as_dict"):
        return result.as_dict()
    if hasattr(result, "to_dict"):
        return result.to_dict()
    return dict(result)


class DocumentIntelligenceService:
    """Service for layout analysis with Azure Document Intelligence."""
    
    def __init__(self, rate_limiter: Optional[RateLimiter] = None, client: Optional[Any] = None):
        """
        Initialize the Document Intelligence service.
        
        Args:
            rate_limiter: Optional rate limiter instance
            client: Pre-built client (defaults to one built from Config)
        """
        self.rate_limiter = rate_limiter
        self.service_name = 'document_intelligence'
        config = Config.get_document_intelligence_config()
        self.model_id = config['model_id']
        
        if client is not None:
            self.client = client
            return
        
        if not config['endpoint'] or not config['api_key']:
            raise ValueError(
                "AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT and AZURE_DOCUMENT_INTELLIGENCE_KEY are required."
            )
        
        try:
            self.client = DocumentIntelligenceClient(
                endpoint=config['endpoint'],
                credential=AzureKeyCredential(config['api_key'])
            )
            logger.info(f"Initialized Azure Document Intelligence service (model {self.model_id})")
        except Exception as e:
            logger.error(f"Failed to initialize Document Intelligence client: {e}")
            raise
    
    def analyze(self, pdf_bytes: bytes) -> Dict[str, Any]:
        """
        Run layout analysis with key-value pairs over a PDF.
        
        Args:
            pdf_bytes: PDF file as bytes
        
        Returns:
            Analyze result as a plain dict (camelCase keys)
        
        Raises:
            DocumentUnreadable: If the rate limit is exhausted or the service fails
        """
        if self.rate_limiter:
            can_call, reason = self.rate_limiter.acquire(self.service_name)
            if not can_call:
                logger.warning(f"Rate limit exceeded: {reason}")
                raise DocumentUnreadable(f"Rate limit exceeded: {reason}")
        
        logger.info(f"Analyzing PDF with Document Intelligence ({len(pdf_bytes)} bytes)")
        try:
            poller = self.client.begin_analyze_document(
                model_id=self.model_id,
                body=pdf_bytes,
                content_type="application/pdf",
                features=[DocumentAnalysisFeature.KEY_VALUE_PAIRS]
            )
            result = _to_dict(poller.result())
        except AzureError as e:
            logger.error(f"Document Intelligence analysis failed: {e}")
            raise DocumentUnreadable(f"OCR analysis failed: {e}") from e
        
        logger.info(
            f"Document Intelligence returned {len(result.get('pages') or [])} pages, "
            f"{len(result.get('tables') or [])} tables, "
            f"{len(result.get('keyValuePairs') or [])} key-value pairs"
        )
        return result
