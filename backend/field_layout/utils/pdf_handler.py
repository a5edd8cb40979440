"""
PDF handling utilities for in-memory processing.
Reads page dimensions and renders single pages without saving to disk.
"""
import base64
import logging
from io import BytesIO
from typing import Dict, Optional

import fitz  # PyMuPDF
from pdf2image import convert_from_bytes
from PIL import Image

from field_layout.services.layout_engine.geometry import PageGeometry

logger = logging.getLogger(__name__)

PDF_MAGIC = b'%PDF'


class PDFHandler:
    """Handler for PDF processing in memory."""
    
    @staticmethod
    def is_pdf(data: bytes) -> bool:
        """Check for the PDF magic bytes."""
        return bool(data) and data[:4] == PDF_MAGIC
    
    @staticmethod
    def page_geometries(pdf_bytes: bytes) -> Dict[int, PageGeometry]:
        """
        Upright page dimensions in points, keyed by 1-based page number.
        
        Rotation is applied: a page rotated 90 or 270 degrees has its
        width and height swapped.
        
        Returns:
            Dict of page number -> PageGeometry, empty if the PDF cannot be read
        """
        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as e:
            logger.warning(f"Could not read PDF page dimensions: {e}")
            return {}
        
        geometries = {}
        try:
            for index, page in enumerate(doc):
                box = page.cropbox
                width, height = box.width, box.height
                if page.rotation % 180 == 90:
                    width, height = height, width
                geometries[index + 1] = PageGeometry(
                    page_number=index + 1,
                    width=round(width, 2),
                    height=round(height, 2)
                )
        finally:
            doc.close()
        
        logger.info(f"Read dimensions of {len(geometries)} PDF page(s)")
        return geometries
    
    @staticmethod
    def render_page(pdf_bytes: bytes, page_number: int, dpi: int = 150) -> Optional[Image.Image]:
        """
        Render one page to a PIL Image.
        
        Args:
            pdf_bytes: PDF file as bytes
            page_number: 1-based page number
            dpi: Render resolution
        
        Returns:
            PIL Image, or None if rendering fails
        """
        try:
            images = convert_from_bytes(pdf_bytes, dpi=dpi, first_page=page_number, last_page=page_number)
        except Exception as e:
            logger.error(f"Error rendering page {page_number}: {e}")
            return None
        
        return images[0] if images else None
    
    @staticmethod
    def image_to_base64(image: Image.Image, format: str = 'PNG') -> str:
        """Encode a PIL Image as base64 text."""
        buffer = BytesIO()
        image.save(buffer, format=format)
        return base64.b64encode(buffer.getvalue()).decode('utf-8')
    
    @classmethod
    def render_page_base64(cls, pdf_bytes: bytes, page_number: int, dpi: int = 150) -> Optional[str]:
        """Render one page and return it as base64 PNG, or None."""
        image = cls.render_page(pdf_bytes, page_number, dpi)
        if image is None:
            return None
        return cls.image_to_base64(image)
