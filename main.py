"""
CLI entry point for the research orchestrator (API Client).

This CLI communicates with the FastAPI backend for job processing.

Usage:
    python main.py "your research query"
    python main.py "quantum computing error correction" --api http://localhost:8000
"""

import sys
import argparse
import time
import requests
import json
from pathlib import Path

from config import settings


# API Configuration
API_BASE_URL = "http://localhost:8000"

STAGE_LABELS = {
    "queued": "⏳ Queued",
    "expanding": "🧭 Stage 1/4: Expanding query",
    "searching": "📚 Stage 2/4: Searching literature",
    "processing": "📄 Stage 3/4: Processing documents",
    "analyzing": "🔍 Stage 4/4: Analyzing",
    "completed": "✅ Complete"
}


def check_api_health(base_url: str):
    """Check if the API is available."""
    try:
        response = requests.get(f"{base_url}/health", timeout=2)
        response.raise_for_status()
        return True, response.json()
    except requests.exceptions.RequestException as e:
        return False, str(e)


def print_progress(status: str, progress: int, message: str = None):
    """Print progress to console."""
    stage_label = STAGE_LABELS.get(status, status)
    bar_length = 40
    filled = int(bar_length * progress / 100)
    bar = "█" * filled + "░" * (bar_length - filled)

    print(f"\r{stage_label} [{bar}] {progress}%", end="", flush=True)

    if message:
        print(f" - {message}", end="", flush=True)


def print_summary(results: dict, output_path: Path):
    """Print results summary."""
    print(f"\n\n{'='*70}")
    print(f"  RESEARCH PIPELINE COMPLETE")
    print(f"{'='*70}")

    print(f"\n🧭 Topics:")
    for topic in results["topics"]:
        count = len(results["documents_by_topic"].get(topic, []))
        print(f"  - {topic} ({count} papers)")

    print(f"\n📚 Papers:")
    print(f"  Found: {results['documents_found']}")
    print(f"  With full text: {results['documents_with_full_text']}")
    print(f"  Failed to process: {results['documents_failed']}")

    analysis = results["analysis"]
    print(f"\n📊 Analysis:")
    print(f"  Key findings: {len(analysis.get('keyFindings', []))}")
    print(f"  Research gaps: {len(analysis.get('researchGaps', []))}")
    print(f"  Future directions: {len(analysis.get('futureDirections', []))}")

    print(f"\n📄 Output: {output_path}")
    print(f"\n{'='*70}\n")


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(
        description="Research Orchestrator (CLI)"
    )
    parser.add_argument("query", help="Research query to investigate")
    parser.add_argument(
        "--api",
        default=API_BASE_URL,
        help=f"Backend URL (default: {API_BASE_URL})"
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=3.0,
        help="Seconds between status checks (default: 3)"
    )

    args = parser.parse_args()
    base_url = args.api.rstrip("/")

    print(f"\n{'='*70}")
    print(f"  RESEARCH ORCHESTRATOR (CLI)")
    print(f"{'='*70}")
    print(f"\nQuery: {args.query}")
    print(f"Backend: {base_url}")
    print(f"\n{'='*70}\n")

    # Check API health
    print("Checking backend API...")
    api_ok, health_info = check_api_health(base_url)

    if not api_ok:
        print(f"\n❌ Cannot connect to backend API at {base_url}")
        print(f"Error: {health_info}")
        print("\nPlease start the FastAPI backend:")
        print("  uvicorn api.api:app --reload --port 8000")
        sys.exit(1)

    print(f"✅ API connected")
    print(f"Active jobs: {health_info['active_jobs']}\n")

    # Submit research job
    try:
        print(f"Submitting research job...")
        response = requests.post(
            f"{base_url}/research",
            json={"query": args.query},
            timeout=10
        )
        response.raise_for_status()
        job_id = response.json()["job_id"]
        print(f"✅ Job created: {job_id}\n")

    except requests.exceptions.HTTPError as e:
        error_detail = e.response.json().get("detail", str(e))
        print(f"❌ Failed to create job: {error_detail}")
        sys.exit(1)
    except requests.exceptions.RequestException as e:
        print(f"❌ Connection error: {str(e)}")
        sys.exit(1)

    # Poll job status
    print("Monitoring job progress...\n")
    max_polls = int(3600 / args.poll_interval)  # one hour
    poll_count = 0

    try:
        while poll_count < max_polls:
            status_response = requests.get(f"{base_url}/status/{job_id}", timeout=5)
            status_response.raise_for_status()
            status_data = status_response.json()

            status = status_data["status"]
            print_progress(status, status_data["progress"], status_data.get("message"))

            if status == "completed":
                print("\n")
                break
            elif status == "failed":
                # A failed job may still be re-queued for another attempt
                time.sleep(args.poll_interval)
                retry_check = requests.get(f"{base_url}/status/{job_id}", timeout=5).json()
                if retry_check["status"] == "failed":
                    print(f"\n\n❌ Job failed: {retry_check.get('message', 'Unknown error')}")
                    sys.exit(1)

            time.sleep(args.poll_interval)
            poll_count += 1

        if poll_count >= max_polls:
            print("\n\n⏱️ Polling timeout. Job may still be running.")
            print(f"Check status: GET {base_url}/status/{job_id}")
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\n⚠️  Interrupted by user. Job is still running on backend.")
        print(f"Check status: GET {base_url}/status/{job_id}")
        sys.exit(1)
    except requests.exceptions.RequestException as e:
        print(f"\n\n❌ Error polling status: {str(e)}")
        sys.exit(1)

    # Fetch results
    try:
        print("Fetching results...")
        results_response = requests.get(f"{base_url}/results/{job_id}", timeout=10)
        results_response.raise_for_status()
        results = results_response.json()

        output_path = settings.get_job_output_dir(job_id) / "analysis.json"
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(results, f, indent=2, ensure_ascii=False)

        print(f"✅ Results saved\n")
        print_summary(results, output_path)
        print("✅ Research completed successfully!")

    except requests.exceptions.RequestException as e:
        print(f"\n\n❌ Failed to fetch results: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
