from pathlib import Path
from fastapi.templating import Jinja2Templates

# Base directory for templates and static files
BASE_DIR = Path(__file__).resolve().parent.parent / "frontend"

templates = Jinja2Templates(directory=BASE_DIR / "templates")
