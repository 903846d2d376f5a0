from .extraction_metrics import evaluate_cases, load_cases, ExtractionReport
