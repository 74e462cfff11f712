"""
Scan Services

Organized by responsibility:

1. registry/ - In-memory scan records
   - scan_registry.py: id allocation, lookup, history listing

2. adapters/ - Audit engines behind a fixed input/output contract
   - base.py: Crawler / PerformanceAuditor / AccessibilityAuditor / SecurityAuditor protocols
   - crawler.py: Selenium same-origin crawler
   - lighthouse.py: Lighthouse CLI performance + SEO audit
   - axe.py: axe-core accessibility audit in headless Chrome
   - zap.py: OWASP ZAP security audit over its JSON API

3. normalization/ - Raw adapter output -> {score, issues}
   - scoring.py: rounding, overall mean, letter grades
   - score_normalizer.py: per-dimension rules and the aggregate report

4. orchestration/ - Job coordination
   - orchestrator.py: stage sequencing, progress, bounded concurrency, cancellation
   - snapshots.py: per-stage JSON snapshots on disk
"""
