import asyncio
import io
import logging

from PIL import Image

from pixelprep import ImageProcessor, PipelineError, TimingCallback


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    timing = TimingCallback()
    processor = ImageProcessor(callbacks=[timing])

    photo = io.BytesIO()
    exif = Image.Exif()
    exif[0x0112] = 6
    Image.new("RGB", (4000, 3000), color="white").save(photo, format="JPEG", exif=exif)

    try:
        result = await processor.process(photo.getvalue())
        print("Pipeline completed successfully!")
        print(f"Output: {result.width}x{result.height}, {len(result)} bytes, orientation {result.orientation.name}")
        print("Timings:", timing.step_timings)
    except PipelineError as e:
        print("Pipeline failed:", e)


if __name__ == "__main__":
    asyncio.run(main())
