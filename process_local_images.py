# process_local_images.py
import asyncio
import os
import json
import time

from caltrack.ai_engine import analyze_meal_image, get_vision_api_key
from caltrack.image_normalizer import normalize_image_bytes
from caltrack.vision_parser import parse_vision_response
from caltrack.nutrition import estimate_macros

PICTURES_DIR = "pictures"

async def main():
    if not os.path.exists(PICTURES_DIR):
        print(f"❌ Error: Directory '{PICTURES_DIR}' not found.")
        print("Please create it and add .jpg/.png files.")
        return

    files = [f for f in os.listdir(PICTURES_DIR) if f.lower().endswith(('.png', '.jpg', '.jpeg', '.webp'))]
    files.sort()

    if not files:
        print(f"⚠️  No images found in '{PICTURES_DIR}'.")
        return

    api_key = get_vision_api_key()
    print(f"🔎 Found {len(files)} images. Starting meal analysis...\n")
    print("="*60)

    for i, filename in enumerate(files, 1):
        filepath = os.path.join(PICTURES_DIR, filename)
        print(f"[{i}/{len(files)}] Processing: {filename}...")

        start_time = time.time()

        with open(filepath, "rb") as f:
            resized = normalize_image_bytes(f.read())
        if not resized:
            print("❌ Failed: could not decode image")
            print("-" * 60)
            continue

        description = await analyze_meal_image(resized["data"], api_key)
        if not description:
            print("❌ Failed: no answer from the vision model")
            print("-" * 60)
            continue

        parsed = parse_vision_response(description)
        calories = parsed["estimated_calories"] or 0
        result = {
            "size": f"{resized['original_width']}x{resized['original_height']} -> {resized['width']}x{resized['height']}",
            "description": description,
            "food_items": parsed["food_items"],
            "estimated_calories": parsed["estimated_calories"],
            "macros": estimate_macros(calories) if calories > 0 else None,
        }

        elapsed = time.time() - start_time
        print(f"✅ Finished in {elapsed:.2f}s")
        print(json.dumps(result, indent=2))
        print("-" * 60)

if __name__ == "__main__":
    asyncio.run(main())
