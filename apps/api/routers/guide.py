"""
Consumer guide page: the URL a SKU's QR code resolves to.
"""

import html
import json
import os
from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from models.sku import Sku
from services.errors import NotFoundError
from services.usage import resolve_public_sku

router = APIRouter()

NOT_FOUND_PAGE = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"/><title>Instructions not found</title></head>
<body style="font-family:sans-serif;text-align:center;padding:40px">
  <h1>Instructions not found</h1>
  <p>This QR code may be invalid or the product has been removed.</p>
</body>
</html>
"""


def format_duration(seconds: int) -> str:
    total = max(int(seconds or 0), 0)
    return f"{total // 60}m {total % 60}s"


def guide_payload(sku: Sku) -> dict:
    return {
        "sku_code": sku.sku_code,
        "product_name": sku.product_name,
        "video_url": sku.video_url,
        "step_count": sku.step_count,
        "video_duration": sku.video_duration,
    }


def render_guide_page(sku: Sku) -> str:
    product = html.escape(sku.product_name)
    code_literal = json.dumps(sku.sku_code)
    video_url = html.escape(sku.video_url or "")
    meta = f"{int(sku.step_count or 0)} steps · {format_duration(sku.video_duration)}"
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8"/>
  <meta name="viewport" content="width=device-width, initial-scale=1.0"/>
  <title>{product} Assembly Guide</title>
</head>
<body>
  <h1>{product}</h1>
  <p class="meta">{html.escape(meta)}</p>
  <video controls preload="metadata" src="{video_url}" style="width:100%"></video>
  <section>
    <p>How was your assembly experience?</p>
    <div class="stars">
      <button onclick="rate(1)">1</button><button onclick="rate(2)">2</button><button onclick="rate(3)">3</button>
      <button onclick="rate(4)">4</button><button onclick="rate(5)">5</button>
    </div>
  </section>
  <section>
    <input id="q-input" placeholder="Have a question about a step? Ask here"/>
    <button onclick="askQuestion()">Ask</button>
  </section>
  <script>
    const SESSION = Math.random().toString(36).slice(2);
    const SKU = {code_literal};
    const post = (path, body) => fetch('/analytics/' + path, {{
      method: 'POST',
      headers: {{ 'Content-Type': 'application/json' }},
      body: JSON.stringify(body)
    }}).catch(() => {{}});

    post('scan', {{ sku_code: SKU, session_id: SESSION, user_agent: navigator.userAgent }});

    function rate(n) {{
      post('complete', {{ sku_code: SKU, session_id: SESSION, rating: n }});
    }}

    function askQuestion() {{
      const input = document.getElementById('q-input');
      const text = input.value.trim();
      if (!text) return;
      post('question', {{ sku_code: SKU, session_id: SESSION, question_text: text }}).then(() => {{
        input.value = '';
      }});
    }}
  </script>
</body>
</html>
"""


@router.get("/s/{sku_code}", response_class=HTMLResponse)
async def guide_page(sku_code: str, db: AsyncSession = Depends(get_db)):
    try:
        sku = await resolve_public_sku(sku_code, db, require_live=True)
    except NotFoundError:
        return HTMLResponse(NOT_FOUND_PAGE, status_code=404)
    return HTMLResponse(render_guide_page(sku))


@router.get("/s/{sku_code}/guide")
async def guide_data(sku_code: str, db: AsyncSession = Depends(get_db)):
    """JSON view of the guide for native clients."""
    sku = await resolve_public_sku(sku_code, db, require_live=True)
    return guide_payload(sku)


@router.get(f"{settings.QR_PUBLIC_PATH.rstrip('/')}/{{filename}}")
async def qr_image(filename: str):
    """Serve a generated QR PNG from the output directory."""
    name = os.path.basename(filename)
    path = Path(settings.QR_OUTPUT_DIR) / name
    if name != filename or not name.endswith(".png") or not path.is_file():
        raise NotFoundError("QR code not found")
    return FileResponse(path, media_type="image/png")
