"""
Configuration management for the form field layout service.
Loads OCR / semantic-labeling credentials and engine tunables from environment variables.
"""
import os
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


class Config:
    """Configuration class for collaborator credentials and engine settings."""
    
    # Azure Document Intelligence (OCR collaborator)
    AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT: Optional[str] = os.getenv('AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT')
    AZURE_DOCUMENT_INTELLIGENCE_KEY: Optional[str] = os.getenv('AZURE_DOCUMENT_INTELLIGENCE_KEY')
    AZURE_DOCUMENT_INTELLIGENCE_MODEL: str = os.getenv('AZURE_DOCUMENT_INTELLIGENCE_MODEL', 'prebuilt-layout')
    
    # Semantic labeling collaborator (OpenAI-compatible chat completions)
    SEMANTIC_LABELER_API_KEY: Optional[str] = os.getenv('SEMANTIC_LABELER_API_KEY') or os.getenv('GEMINI_API_KEY')
    SEMANTIC_LABELER_API_BASE: str = os.getenv(
        'SEMANTIC_LABELER_API_BASE',
        'https://generativelanguage.googleapis.com/v1beta/openai'
    )
    SEMANTIC_LABELER_MODEL: str = os.getenv('SEMANTIC_LABELER_MODEL', 'gemini-1.5-pro')
    SEMANTIC_LABELER_TIMEOUT: float = float(os.getenv('SEMANTIC_LABELER_TIMEOUT', '60'))
    
    # Layout engine tunables
    ROW_TOLERANCE_POINTS: float = float(os.getenv('ROW_TOLERANCE_POINTS', '8'))
    POSITION_BUCKET_X: float = float(os.getenv('POSITION_BUCKET_X', '10'))
    POSITION_BUCKET_Y: float = float(os.getenv('POSITION_BUCKET_Y', '5'))
    POSITION_KEY_TOLERANCE: int = int(os.getenv('POSITION_KEY_TOLERANCE', '0'))
    LABEL_LEXICONS: List[str] = [
        name.strip() for name in os.getenv('LABEL_LEXICONS', 'he,en').split(',') if name.strip()
    ]
    MAX_CONCURRENT_PAGES: int = int(os.getenv('MAX_CONCURRENT_PAGES', '4'))
    PAGE_RENDER_DPI: int = int(os.getenv('PAGE_RENDER_DPI', '150'))
    
    # Rate Limiting
    MAX_TOTAL_CALLS: int = int(os.getenv('MAX_TOTAL_CALLS', '500'))
    ENABLE_RATE_LIMITING: bool = os.getenv('ENABLE_RATE_LIMITING', 'true').lower() == 'true'
    
    # API Settings
    API_HOST: str = os.getenv('API_HOST', '0.0.0.0')
    API_PORT: int = int(os.getenv('API_PORT', '8000'))
    CORS_ORIGINS: list = os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',')
    
    @classmethod
    def validate(cls) -> bool:
        """
        Validate that required configuration is present.
        """
        if not cls.AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT or not cls.AZURE_DOCUMENT_INTELLIGENCE_KEY:
            raise ValueError(
                "Azure Document Intelligence not configured. Please set:\n"
                "  - AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT and\n"
                "  - AZURE_DOCUMENT_INTELLIGENCE_KEY environment variables"
            )
        
        if not cls.SEMANTIC_LABELER_API_KEY:
            raise ValueError(
                "Semantic labeler API key not found. Please set either:\n"
                "  - SEMANTIC_LABELER_API_KEY, or\n"
                "  - GEMINI_API_KEY environment variable"
            )
        
        if cls.POSITION_BUCKET_X <= 0 or cls.POSITION_BUCKET_Y <= 0:
            raise ValueError("POSITION_BUCKET_X and POSITION_BUCKET_Y must be positive.")
        
        if cls.MAX_CONCURRENT_PAGES < 1:
            raise ValueError("MAX_CONCURRENT_PAGES must be at least 1.")
        return True
    
    @classmethod
    def get_document_intelligence_config(cls) -> dict:
        """
        Get Azure Document Intelligence client configuration.
        """
        return {
            'endpoint': cls.AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT,
            'api_key': cls.AZURE_DOCUMENT_INTELLIGENCE_KEY,
            'model_id': cls.AZURE_DOCUMENT_INTELLIGENCE_MODEL,
        }
