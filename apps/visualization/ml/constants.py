INSIGHT_DEFAULT_ENDPOINT = "http://localhost:11434/api/generate"
INSIGHT_DEFAULT_MODEL = "llama3.1:latest"
INSIGHT_DEFAULT_TIMEOUT = 60

# Keep the prompt small enough for local models
MAX_PROMPT_COLUMNS = 40
MAX_PROMPT_ISSUES = 5

INSIGHT_PROMPT = """
You are a data analyst. Summarise the dataset described below for a business user.

CRITICAL: Return ONLY a single valid JSON object. No markdown, no code blocks, no explanatory text before or after.

## Response Structure
{{
  "summary": "string (2-4 sentences describing what the data contains)",
  "highlights": ["string", ...],
  "suggested_charts": [
    {{
      "chart_type": "string",
      "x_column": "<COL_NAME>",
      "y_column": "<COL_NAME> or null",
      "reason": "string"
    }}
  ]
}}

## Rules
- Only refer to columns listed below
- Maximum 3 suggested charts
- Mention the most important data quality problem if there is one

---

Dataset: "{dataset_name}" ({row_count} rows)

Columns:
{column_summary}

Data quality:
{quality_summary}
"""
