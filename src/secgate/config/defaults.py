"""Starter .secgate.toml and exception registry templates."""

DEFAULT_TOML = """\
# SecGate Configuration
version = "1.0"

[gate]
mandatory_scanners = ["secret-scan"]   # an unparseable or missing report from these fails the gate
fail_severity = "high"                 # max_count = 0 rules at or above this level are blocking
fail_on_warn = false                   # exit 3 instead of 0 on a warn verdict
warn_on_unparseable = true             # unparseable optional reports turn pass into warn
parse_timeout_s = 60
# max_workers = 4                      # default: one worker per report

[output]
format = "terminal"                    # terminal | json | sarif
show_summary = true
include_raw = false                    # embed redacted native records in the JSON report

[exceptions]
file = ".secgate-exceptions.yml"
expiry_warning_days = 14

# [normalizer.severity_overrides.checkov]
# unknown = "medium"                   # checkov OSS reports no severity

[[reports]]
tool = "secret-scan"
format = "trufflehog"
path = "trufflehog.json"

[[reports]]
tool = "sast"
format = "bandit"
path = "bandit-results.json"

[[reports]]
tool = "sca"
format = "safety"
path = "safety-results.json"

[[reports]]
tool = "container"
format = "sarif"
path = "trivy-results.sarif"

[[policy.rules]]
name = "no-secrets"
category = "secret"
min_severity = "low"
max_count = 0
mandatory_for_pass = true

[[policy.rules]]
name = "no-critical-or-high"
category = "*"
min_severity = "high"
max_count = 0

[[policy.rules]]
name = "limit-medium"
category = "*"
min_severity = "medium"
max_count = 10
"""

DEFAULT_EXCEPTIONS_YAML = """\
# SecGate exception registry.
# Every entry needs an expiry and a justification; expired entries are ignored.
#
# - id: EXC-001
#   finding_id: FND-0123456789abcdef      # or rule_id (+ optional location glob)
#   expires_at: 2030-01-31T00:00:00Z
#   justification: "Vendor fix scheduled; compensating WAF rule in place"
#   owner: platform-security
#
# - id: EXC-002
#   rule_id: B101
#   location: "tests/*"
#   expires_at: 2030-06-30
#   justification: "Asserts are expected in test code"
[]
"""
