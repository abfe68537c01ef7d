import os

from agents import Agent, Runner

from shopguide.receipt.base import ExtractionConfigError, ExtractionError
from shopguide.receipt.prompt import INSTRUCTIONS, USER_MESSAGE

agent = Agent(
    name="Receipt Scanner",
    instructions=INSTRUCTIONS,
    model=os.getenv("RECEIPT_MODEL", "gpt-4o"),
)


class OpenAIReceiptExtractor:
    """Receipt extraction using OpenAI Agents SDK with a vision model.

    The agent has no output_type: the model answers in free text and
    ``receipt.normalizer`` digs the JSON object out of it.
    """

    def __init__(self):
        if not os.getenv("OPENAI_API_KEY"):
            raise ExtractionConfigError("OPENAI_API_KEY is not set")

    async def extract(self, document: str, media_type: str) -> str:
        data_uri = f"data:{media_type};base64,{document}"
        if media_type == "application/pdf":
            attachment = {"type": "input_file", "file_data": data_uri, "filename": "receipt.pdf"}
        else:
            attachment = {"type": "input_image", "image_url": data_uri, "detail": "auto"}

        result = await Runner.run(
            agent,
            input=[
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": USER_MESSAGE},
                        attachment,
                    ],
                }
            ],
        )

        text = result.final_output
        if not isinstance(text, str) or not text.strip():
            raise ExtractionError("Model returned an empty response")
        return text
