"""
Prompt texts sent to the LLM.

EXTRACTION_PROMPT defines the JSON contract that gemini.extract_courses()
parses: {success, error, message, courses: [{title, units, grade}], uncertain}.
"""

from __future__ import annotations

from typing import Sequence

from gwacalc.model import Course

EXTRACTION_PROMPT = """
Analyze this image to extract course information from academic records, transcripts, or grade reports.

FIRST: Determine if this image contains academic/educational content:
- Look for course names, grades, units/credits, transcripts, grade reports
- Academic tables with course information
- Educational institution documents

IF NO ACADEMIC CONTENT FOUND:
Return this exact JSON:
{
  "success": false,
  "error": "no_academic_content",
  "message": "This image does not appear to contain academic records or course information.",
  "courses": [],
  "uncertain": false
}

IF ACADEMIC CONTENT FOUND:
Extract course information with these rules:

1. DECIMAL DETECTION RULE:
   - If ANY column has decimal values (like 3.5, 2.7, 4.0, 1.3), that column is the GRADES column
   - The other numerical column (whole numbers) is the UNITS column

2. COLUMN PAIRING LOGIC:
   - If no decimal column exists, identify columns by typical ranges
   - Units are typically 1-6 (whole numbers only)
   - Grades are typically 0.0-4.0 (can have decimals)

3. UNCERTAINTY CONDITIONS:
   - Set "uncertain": true if you find decimal values in what appears to be a units column
   - Set "uncertain": true if ALL numerical columns contain only whole numbers AND you cannot tell which is which
   - Set "uncertain": true if there are no clear numerical columns for both units and grades
   - Set "uncertain": true if the image layout is too unclear to identify columns

4. DATA VALIDATION:
   - Units MUST be whole numbers, never decimals
   - Grades can be decimals or whole numbers
   - Convert letter grades (A, B, C, etc.) to the numeric equivalent on a 4.0 scale
   - Use null for any unclear values

FOR SUCCESSFUL EXTRACTION, return this exact JSON format:
{
  "success": true,
  "error": null,
  "message": "Successfully extracted course information.",
  "courses": [
    {"title": "Course name or null", "units": whole_number_only, "grade": numeric_grade_0_to_4}
  ],
  "uncertain": boolean
}

FOR UNCERTAIN EXTRACTION, return this exact JSON format:
{
  "success": false,
  "error": "uncertain_data",
  "message": "Could not clearly distinguish between units and grades columns.",
  "courses": [],
  "uncertain": true
}

Return ONLY valid JSON, nothing else.
""".strip()


def _fmt_number(x: float) -> str:
    # 3.0 -> "3", 3.5 -> "3.5"
    return str(int(x)) if float(x).is_integer() else str(x)


def course_lines(courses: Sequence[Course]) -> str:
    lines: list[str] = []
    for i, c in enumerate(courses, start=1):
        title = c.title.strip() or "Untitled Course"
        grade = _fmt_number(c.grade) if c.grade is not None else "N/A"
        lines.append(f"{i}. {title} ({_fmt_number(c.units)} units): Grade {grade}")
    return "\n".join(lines)


def analysis_prompt(courses: Sequence[Course]) -> str:
    return (
        "I have the following courses and grades:\n"
        f"{course_lines(courses)}\n\n"
        "Please analyze this data and provide:\n"
        "1. Brief analysis of the current performance\n"
        "2. Suggestions for potential areas of improvement\n"
        "3. Any patterns you observe in the grades\n"
        "4. Tips for maintaining or improving my GPA"
    )
