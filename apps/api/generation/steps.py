import base64
import json
import logging
import mimetypes
import os
from typing import Any, Dict, List, Optional

from openai import OpenAI

from services.errors import ExtractionError
from .models import ExtractedSteps, InstructionStep

logger = logging.getLogger(__name__)

# Deterministic steps used when no OpenAI key is configured (local/dev).
FALLBACK_STEPS = [
    "Lay out all parts on a flat surface and identify each component using the parts list.",
    "Attach the side panels to the base using the provided cam locks. Do not fully tighten yet.",
    "Insert the shelf pins into the pre-drilled holes at your desired height.",
    "Slide the shelves into position on the shelf pins.",
    "Attach the back panel by pressing it into the frame grooves.",
    "Fully tighten all cam locks and check that the unit is stable.",
]

SYSTEM_PROMPT = """
You are a technical writer turning paper assembly instructions into a numbered script.
Read the attached instruction document and list every assembly step in order.

Return a strict JSON object matching this schema:
{
  "steps": [
    {"step_number": 1, "description": "string"}
  ]
}
Each description is one or two short imperative sentences. Do not invent steps.
"""


def get_openai_client(api_key: str) -> Optional[OpenAI]:
    """Get OpenAI client, handling placeholders."""
    if not api_key or "your_" in api_key or api_key == "test-key":
        return None
    return OpenAI(api_key=api_key)


def _read_artifact(artifact_path: str) -> bytes:
    if not artifact_path or not os.path.isfile(artifact_path):
        raise ExtractionError("Instruction file not found")
    try:
        with open(artifact_path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise ExtractionError(f"Instruction file unreadable: {exc}") from exc
    if not data:
        raise ExtractionError("Instruction file is empty")
    return data


def _artifact_part(artifact_path: str, file_type: str, data: bytes) -> Dict[str, Any]:
    encoded = base64.b64encode(data).decode("utf-8")
    if file_type == "pdf":
        return {
            "type": "file",
            "file": {
                "filename": os.path.basename(artifact_path),
                "file_data": f"data:application/pdf;base64,{encoded}",
            },
        }
    mime_type = mimetypes.guess_type(artifact_path)[0] or "image/jpeg"
    return {
        "type": "image_url",
        "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
    }


def normalize_steps(raw_steps: List[InstructionStep]) -> List[InstructionStep]:
    """Order by step number, drop blanks and renumber from 1."""
    ordered = sorted(raw_steps, key=lambda s: s.step_number)
    cleaned = [s.description.strip() for s in ordered if s.description and s.description.strip()]
    return [InstructionStep(step_number=i, description=text) for i, text in enumerate(cleaned, start=1)]


def extract_steps(
    artifact_path: str,
    file_type: str,
    api_key: str,
    model: str = "gpt-4o",
) -> List[InstructionStep]:
    """
    Extract ordered assembly steps from an uploaded PDF or image.

    Raises ExtractionError when the artifact cannot be read, the model call
    fails, or no steps come back.
    """
    data = _read_artifact(artifact_path)
    client = get_openai_client(api_key)

    if client is None:
        logger.warning("Using MOCK step extraction because OpenAI API Key is missing or invalid.")
        steps = [InstructionStep(step_number=i, description=text) for i, text in enumerate(FALLBACK_STEPS, start=1)]
        return normalize_steps(steps)

    try:
        response = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": "Extract the assembly steps from this document."},
                        _artifact_part(artifact_path, file_type, data),
                    ],
                },
            ],
            response_format={"type": "json_object"},
            max_tokens=2000,
        )
        content = response.choices[0].message.content or "{}"
        parsed = ExtractedSteps(**json.loads(content))
    except Exception as e:
        logger.error(f"Error in step extraction: {e}")
        raise ExtractionError(f"Step extraction failed: {e}") from e

    steps = normalize_steps(parsed.steps)
    if not steps:
        raise ExtractionError("No assembly steps found in instruction file")
    return steps
