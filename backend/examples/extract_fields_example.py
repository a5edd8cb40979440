#!/usr/bin/env python3
"""
Field Layout Pipeline - Example Usage
=====================================

Runs the field layout pipeline over a local PDF and prints the positioned
fields, or lays out fields from a saved OCR analyze result.

Usage:
    python examples/extract_fields_example.py path/to/form.pdf
    python examples/extract_fields_example.py --analyze-result result.json

Requirements:
    - AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT / AZURE_DOCUMENT_INTELLIGENCE_KEY (for OCR)
    - Optional: SEMANTIC_LABELER_API_KEY or GEMINI_API_KEY (without it every
      page uses the fallback path)
    - poppler (for pdf2image page rendering)
"""

import sys
import json
import argparse
import logging
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from field_layout.services.layout_engine import (
    DocumentResult,
    FieldLayoutPipeline,
    PageFieldExtractor,
    layout_from_analyze_result
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_result(result: DocumentResult):
    stats = result.statistics
    
    print("\n" + "=" * 60)
    print("FIELD LAYOUT RESULTS")
    print("=" * 60)
    print(f"\nDocument ID: {result.document_id}")
    print(f"Total Pages: {stats['page_count']}")
    print(f"Total Fields: {stats['total_fields']}")
    if stats['fallback_pages']:
        print(f"Fallback Pages: {stats['fallback_pages']}")
    
    for page in result.pages:
        print(f"\nPage {page.page_number}: {len(page.fields)} fields")
        for f in sorted(page.fields, key=lambda f: f.tab_index or 0):
            print(
                f"  #{f.tab_index:<3} [{f.type.value:9}] {f.name:24} "
                f"x={f.box.x:7.1f} y={f.box.y:7.1f} w={f.box.width:6.1f} h={f.box.height:5.1f} "
                f"{f.direction.value} {f.provenance.value:14} (conf: {f.confidence:.2f} {f.quality.value})"
            )
        for label in page.unmatched_labels:
            print(f"    unmatched label: \"{label}\"")
    
    print("\n" + "-" * 40)
    print("STATISTICS")
    print("-" * 40)
    print(f"Average Confidence: {stats['average_confidence']:.2%}")
    print("Quality Distribution:")
    for tier, count in stats['quality_distribution'].items():
        print(f"  {tier}: {count}")


def save_result(result: DocumentResult, output_path: str):
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(result.to_dict(), f, ensure_ascii=False, indent=2)
    logger.info(f"Output saved to: {output_path}")


def process_pdf(pdf_path: str, output_path: str = None):
    """Run the full pipeline over a PDF."""
    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        logger.error(f"File not found: {pdf_path}")
        return None
    
    with open(pdf_path, 'rb') as f:
        pdf_bytes = f.read()
    
    logger.info(f"Processing: {pdf_path.name} ({len(pdf_bytes):,} bytes)")
    
    pipeline = FieldLayoutPipeline.from_config()
    result = pipeline.process_pdf(pdf_bytes, document_id=pdf_path.stem)
    
    print_result(result)
    if output_path:
        save_result(result, output_path)
    return result


def process_analyze_result(result_path: str, semantic_path: str = None, output_path: str = None):
    """Lay out fields from a saved analyze result (and optional semantic payloads)."""
    with open(result_path, 'r', encoding='utf-8') as f:
        analyze_result = json.load(f)
    
    semantic_payloads = {}
    if semantic_path:
        with open(semantic_path, 'r', encoding='utf-8') as f:
            semantic_payloads = {int(k): v for k, v in json.load(f).items()}
    
    result = layout_from_analyze_result(
        analyze_result,
        semantic_payloads=semantic_payloads,
        document_id=Path(result_path).stem,
        extractor=PageFieldExtractor.from_config()
    )
    
    print_result(result)
    if output_path:
        save_result(result, output_path)
    return result


def main():
    parser = argparse.ArgumentParser(
        description='Form Field Layout Pipeline',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Process a PDF and print results
    python extract_fields_example.py form.pdf
    
    # Process and save output to JSON
    python extract_fields_example.py form.pdf -o fields.json
    
    # Lay out fields from a saved OCR result and per-page semantic payloads
    python extract_fields_example.py --analyze-result ocr.json --semantic semantic.json
        """
    )
    
    parser.add_argument(
        'pdf_path',
        nargs='?',
        help='Path to PDF file to process'
    )
    
    parser.add_argument(
        '-o', '--output',
        help='Path to save JSON output'
    )
    
    parser.add_argument(
        '--analyze-result',
        help='Path to a saved OCR analyze result (JSON) to lay out instead of a PDF'
    )
    
    parser.add_argument(
        '--semantic',
        help='Path to JSON mapping page number -> semantic payload (with --analyze-result)'
    )
    
    args = parser.parse_args()
    
    if args.analyze_result:
        process_analyze_result(args.analyze_result, args.semantic, args.output)
        return
    
    if not args.pdf_path:
        parser.print_help()
        print("\nError: Please provide a PDF path or use --analyze-result")
        sys.exit(1)
    
    process_pdf(args.pdf_path, args.output)


if __name__ == '__main__':
    main()
