"""Built-in parser catalogue."""

from secgate.parsers.container import parse_trivy
from secgate.parsers.dast import parse_zap
from secgate.parsers.iac import parse_checkov, parse_tfsec
from secgate.parsers.registry import ParserSpec
from secgate.parsers.sarif import parse_sarif
from secgate.parsers.sast import parse_bandit
from secgate.parsers.sca import parse_dependency_check, parse_safety
from secgate.parsers.secrets import parse_gitleaks, parse_trufflehog

ALL_BUILTIN_PARSERS = [
    ParserSpec("trufflehog", parse_trufflehog, "secret-scan", "TruffleHog JSON lines (v2 and v3)"),
    ParserSpec("gitleaks", parse_gitleaks, "secret-scan", "Gitleaks JSON report"),
    ParserSpec("bandit", parse_bandit, "sast", "Bandit -f json"),
    ParserSpec("safety", parse_safety, "sca", "Safety check --json"),
    ParserSpec("dependency-check", parse_dependency_check, "sca", "OWASP Dependency-Check JSON"),
    ParserSpec("trivy", parse_trivy, "container", "Trivy JSON"),
    ParserSpec("sarif", parse_sarif, None, "SARIF 2.1.0 (tool must be given)"),
    ParserSpec("checkov", parse_checkov, "iac", "Checkov -o json"),
    ParserSpec("tfsec", parse_tfsec, "iac", "tfsec --format json"),
    ParserSpec("zap", parse_zap, "dast", "OWASP ZAP JSON report"),
]
