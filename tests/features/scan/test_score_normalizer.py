"""
Tests for turning raw audit output into dimension scores.
"""
from app.features.scan.schemas.scan import DEFAULT_METRICS
from app.features.scan.services.normalization.score_normalizer import (
    build_aggregate,
    calculate_security_score,
    normalize_performance,
    normalize_security,
    normalize_seo,
    normalize_ux,
)
from app.features.scan.services.normalization.scoring import (
    calculate_overall_score,
    letter_grade,
    round_score,
)


class TestOverallScore:
    def test_mean_of_four_scores(self):
        assert calculate_overall_score(80, 90, 70, 60) == 75

    def test_all_missing_is_zero(self):
        assert calculate_overall_score(None, None, None, None) == 0

    def test_missing_scores_leave_the_denominator(self):
        assert calculate_overall_score(100, None, 50, None) == 75

    def test_zero_is_a_real_score(self):
        assert calculate_overall_score(0, 100, None, None) == 50

    def test_rounds_half_up(self):
        assert round_score(74.5) == 75
        assert round_score(72.5) == 73
        assert calculate_overall_score(70, 71) == 71


class TestSecurityScore:
    def test_deductions_per_severity(self):
        assert calculate_security_score({"high": 2, "medium": 1, "low": 0}) == 65

    def test_low_findings_cost_two_points(self):
        assert calculate_security_score({"low": 3}) == 94

    def test_clamps_at_zero(self):
        assert calculate_security_score({"high": 5, "medium": 10, "low": 10}) == 0

    def test_informational_only_keeps_full_score(self):
        assert calculate_security_score({"informational": 12}) == 100

    def test_missing_summary_scores_zero(self):
        report = normalize_security({"websites": []})
        assert report.score == 0
        assert report.vulnerabilities == []


class TestVulnerabilityList:
    def test_top_vulnerabilities_capped_at_fifteen_in_order(self):
        top = [{"title": "Info leak", "risk": "Informational", "occurrences": 9}]
        top += [{"title": f"Finding {i}", "risk": "Medium", "occurrences": i} for i in range(20)]
        report = normalize_security({"summary": {"riskDistribution": {}, "topVulnerabilities": top}})

        assert len(report.vulnerabilities) == 15
        assert [v.title for v in report.vulnerabilities] == [f"Finding {i}" for i in range(15)]
        assert all(v.severity == "medium" for v in report.vulnerabilities)

    def test_field_defaults(self):
        report = normalize_security({
            "summary": {"riskDistribution": {"high": 1}, "topVulnerabilities": [{"title": "XSS", "risk": "High"}]}
        })
        vuln = report.vulnerabilities[0]
        assert vuln.title == "XSS"
        assert vuln.severity == "high"
        assert vuln.description == "XSS"
        assert vuln.count == 1
        assert vuln.impact == 5
        assert vuln.effort == "Medium"

    def test_occurrences_become_count(self):
        report = normalize_security({
            "summary": {"riskDistribution": {}, "topVulnerabilities": [
                {"title": "CSP missing", "risk": "Medium", "occurrences": 6, "impact": 7, "effort": "Low"}
            ]}
        })
        vuln = report.vulnerabilities[0]
        assert vuln.count == 6
        assert vuln.impact == 7
        assert vuln.effort == "Low"

    def test_falls_back_to_site_issues_capped_per_site(self):
        site_a = [{"title": f"A{i}", "risk": "Low", "description": f"desc {i}"} for i in range(18)]
        site_b = [{"title": "B0", "risk": "High"}, {"title": "B-info", "risk": "Informational"},
                  {"title": "B-norisk"}]
        report = normalize_security({
            "summary": {"riskDistribution": {"low": 18, "high": 1}},
            "websites": [{"issues": site_a}, {"issues": site_b}],
        })

        titles = [v.title for v in report.vulnerabilities]
        assert titles == [f"A{i}" for i in range(15)] + ["B0"]
        assert report.vulnerabilities[0].description == "desc 0"
        assert report.vulnerabilities[-1].description == "B0"
        assert all(v.count == 1 for v in report.vulnerabilities)

    def test_fallback_used_when_top_list_is_only_informational(self):
        report = normalize_security({
            "summary": {"riskDistribution": {}, "topVulnerabilities": [{"title": "Info", "risk": "Informational"}]},
            "websites": [{"issues": [{"title": "Cookie without Secure flag", "risk": "Low"}]}],
        })
        assert [v.title for v in report.vulnerabilities] == ["Cookie without Secure flag"]


class TestUxScore:
    RAW = {
        "results": [
            {"url": "https://a.test/", "status": "COMPLETED", "accessibility_score": 80,
             "violations": [{"id": "image-alt", "description": "Images must have alternate text",
                             "impact": "critical"}]},
            {"url": "https://a.test/about", "status": "completed", "accessibility_score": 60,
             "violations": [{"id": "image-alt", "description": "Images must have alternate text"}]},
            {"url": "https://a.test/broken", "status": "FAILED", "accessibility_score": 0,
             "violations": [{"id": "ignored", "description": "never counted"}]},
        ]
    }

    def test_average_over_completed_pages_only(self):
        assert normalize_ux(self.RAW).score == 70

    def test_violations_flattened_with_url_and_severity(self):
        issues = normalize_ux(self.RAW).issues
        assert len(issues) == 2
        assert issues[0]["url"] == "https://a.test/"
        assert issues[0]["severity"] == "critical"
        assert issues[1]["url"] == "https://a.test/about"
        assert issues[1]["severity"] == "minor"

    def test_recommendation_counts_instances_and_pages(self):
        recommendations = normalize_ux(self.RAW).recommendations
        assert recommendations == ["Images must have alternate text (2 instances across 2 pages)"]

    def test_same_page_counts_once(self):
        raw = {"results": [{
            "url": "https://a.test/", "status": "COMPLETED", "accessibility_score": 90,
            "violations": [{"id": "label", "description": "Form elements must have labels"}] * 3,
        }]}
        assert normalize_ux(raw).recommendations == [
            "Form elements must have labels (3 instances across 1 pages)"
        ]

    def test_nothing_completed_scores_zero(self):
        raw = {"results": [{"url": "https://a.test/", "status": "FAILED", "violations": []}]}
        assert normalize_ux(raw).score == 0

    def test_missing_results(self):
        report = normalize_ux(None)
        assert report.score == 0
        assert report.issues == []
        assert report.recommendations == []


class TestPerformanceAndSeo:
    def test_passes_scores_and_issues_through(self):
        raw = {
            "summary": {"overallPerformanceScore": 83, "overallSeoScore": 91},
            "pageResults": [{"url": "https://a.test/", "metrics": {"speedIndex": 1800}}],
            "issues": {"performance": ["slow"], "seo": ["no meta"]},
        }
        performance = normalize_performance(raw)
        seo = normalize_seo(raw)

        assert performance.score == 83
        assert performance.issues == ["slow"]
        assert performance.metrics == {"speedIndex": 1800}
        assert seo.score == 91
        assert seo.issues == ["no meta"]

    def test_missing_summary_defaults(self):
        performance = normalize_performance({})
        seo = normalize_seo({})

        assert performance.score == 0
        assert performance.issues == []
        assert performance.metrics == DEFAULT_METRICS
        assert seo.score == 0
        assert seo.issues == []


class TestAggregate:
    def test_builds_full_report(self):
        result = build_aggregate(
            performance_raw={"summary": {"overallPerformanceScore": 80, "overallSeoScore": 90,
                                         "performanceGrade": "B"}},
            ux_raw={"results": [{"url": "u", "status": "COMPLETED", "accessibility_score": 70}]},
            security_raw={"summary": {"riskDistribution": {"high": 2, "medium": 1}}},
            total_pages=14,
            scanned_pages=10,
        )

        assert result.overall == round_score((80 + 90 + 70 + 65) / 4)
        assert result.summary.total_pages == 14
        assert result.summary.scanned_pages == 10
        assert result.summary.performance_grade == "B"
        assert result.summary.seo_grade == "F"

        dumped = result.model_dump(by_alias=True)
        assert dumped["overall"] == 76
        assert "pageResults" in dumped["performance"]
        assert dumped["summary"]["totalPages"] == 14


def test_letter_grades():
    assert letter_grade(95) == "A"
    assert letter_grade(85) == "B"
    assert letter_grade(72) == "C"
    assert letter_grade(55) == "D"
    assert letter_grade(10) == "F"
    assert letter_grade(None) == "F"


class TestEngineScoresPassThrough:
    def test_fractional_scores_are_not_rounded(self):
        raw = {"summary": {"overallPerformanceScore": 85.6, "overallSeoScore": 91.25}}
        assert normalize_performance(raw).score == 85.6
        assert normalize_seo(raw).score == 91.25

    def test_numeric_strings_are_read_as_numbers(self):
        raw = {"summary": {"overallPerformanceScore": "72", "overallSeoScore": "88.5"}}
        assert normalize_performance(raw).score == 72
        assert normalize_seo(raw).score == 88.5

    def test_non_numeric_values_score_zero(self):
        raw = {"summary": {"overallPerformanceScore": "n/a", "overallSeoScore": True}}
        assert normalize_performance(raw).score == 0
        assert normalize_seo(raw).score == 0

    def test_overall_uses_unrounded_engine_scores(self):
        result = build_aggregate(
            performance_raw={"summary": {"overallPerformanceScore": 85.6, "overallSeoScore": 90}},
            ux_raw=None,
            security_raw={"summary": {"riskDistribution": {}}},
            total_pages=1,
            scanned_pages=1,
        )
        # (85.6 + 90 + 0 + 100) / 4 = 68.9
        assert result.overall == 69
        assert result.model_dump(by_alias=True)["performance"]["score"] == 85.6
