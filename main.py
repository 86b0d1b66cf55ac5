import os

import uvicorn
from dotenv import load_dotenv

if __name__ == "__main__":
    load_dotenv()
    # Hugging Face Spaces sets PORT=7860
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("healthdash.api.main:app", host="0.0.0.0", port=port, reload=False)
