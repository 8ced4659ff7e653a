"""Mock responses for testing without API calls."""

MOCK_RESPONSE = """```json
{
  "score": 85,
  "overall": "comment",
  "strengths": ["Uses CTEs to separate import and logic steps"],
  "issues": [
    {
      "pattern": "Unqualified column in join",
      "severity": "medium",
      "location": "Line 3",
      "line": 3,
      "fix": "Prefix the column with its CTE alias, e.g. orders.customer_id",
      "explanation": "customer_id exists in both inputs; the reference is ambiguous on some warehouses."
    }
  ],
  "summary": "Mock review: one ambiguous column reference."
}
```"""
