"""Employee attrition risk scoring: feature encoding, classifier training and rule-based fallback."""

__version__ = "1.0.0"
