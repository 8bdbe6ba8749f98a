#!/usr/bin/env python3
"""
LLM Merge - CLI Interface
"""

import asyncio
import sys
from pathlib import Path

from loguru import logger

from llm_merge import MergeOrchestrator, load_config
from llm_merge.errors import AllModelsFailedError, MergeError
from llm_merge.utils import setup_logging, format_duration


async def print_stats(orchestrator: MergeOrchestrator):
    stats = await orchestrator.get_stats()
    storage = stats["storage"]
    print(f"\n🗄️  Storage: {storage['storage']}, {storage['total_sessions']} sessions recorded")
    print(f"💾 Cache: {stats['cache']['entries']} entries, {stats['cache']['hits']} hits")

    performance = stats["performance"]
    print("\n📊 Model Performance:")
    if not performance:
        print("  No observations yet")
        return
    for model_id, record in performance.items():
        print(f"  {model_id}:")
        print(f"    Calls: {record['sample_count']} ({record['successful_calls']} ok)")
        print(f"    Quality EMA: {record['quality_score_ema']:.3f}")
        print(f"    Success EMA: {record['success_rate_ema']:.1%}")
        print(f"    Latency EMA: {format_duration(record['latency_ema_ms'])}")


async def main(config_path: str = "config.yaml"):
    """Main CLI entry point."""
    setup_logging("INFO")

    if not Path(config_path).exists():
        logger.error(f"{config_path} not found. Please create it from the template.")
        return

    try:
        config = load_config(config_path)
    except MergeError as e:
        logger.error(f"Invalid configuration: {e}")
        return

    setup_logging(
        config.logging.level,
        config.logging.file,
        config.logging.rotation,
        config.logging.retention
    )

    logger.info("Initializing LLM Merge...")
    orchestrator = MergeOrchestrator.from_config(config)

    try:
        await orchestrator.initialize()
    except MergeError as e:
        logger.error(f"Failed to initialize: {e}")
        return

    print("\n" + "="*60)
    print("🔀  LLM MERGE - Multi-Model Weighted Consensus")
    print("="*60)
    print(f"\nModels: {len(orchestrator.registry)}")
    for model in orchestrator.registry:
        print(f"  • {model.id} ({model.provider})")

    print("\nCommands:")
    print("  - Type a prompt to query every model")
    print("  - 'stats' - Show model performance")
    print("  - 'reset' - Forget model performance history")
    print("  - 'cleanup' - Delete merge history older than 90 days")
    print("  - 'quit' or 'exit' - Exit the program")
    print("\n" + "="*60 + "\n")

    while True:
        try:
            prompt = input("\n🤔 You: ").strip()

            if not prompt:
                continue

            if prompt.lower() in ["quit", "exit", "q"]:
                print("\n👋 Goodbye!")
                break

            if prompt.lower() == "stats":
                await print_stats(orchestrator)
                continue

            if prompt.lower() == "reset":
                await orchestrator.reset_performance()
                print("\n🧹 Performance history cleared")
                continue

            if prompt.lower() == "cleanup":
                removed = await orchestrator.cleanup_history()
                print(f"\n🧹 Removed {removed} old sessions")
                continue

            print("\n💭 Querying models...")

            try:
                result = await orchestrator.merge(prompt)
            except AllModelsFailedError as e:
                print(f"\n❌ {e}")
                for candidate in e.candidates:
                    print(f"   {candidate.model_id}: {candidate.error_message}")
                continue

            print(f"\n{'='*60}")
            print(f"📜 MERGED ANSWER (from {result.primary_model})")
            print(f"{'='*60}\n")
            print(result.final_content)

            print(f"\n{'─'*60}")
            print(f"🤝 Consensus: {result.consensus_score:.1%}")
            print(f"📝 Responses: {sum(1 for c in result.diagnostics if c.succeeded)}/{len(result.diagnostics)} models")
            weights = ", ".join(f"{m}={w:.2f}" for m, w in result.weights.items())
            print(f"⚖️  Weights: {weights}")
            if result.from_cache:
                print("💾 Served from cache")
            print(f"{'─'*60}\n")

        except KeyboardInterrupt:
            print("\n\n👋 Goodbye!")
            break
        except Exception as e:
            logger.error(f"Error: {e}")
            print(f"\n❌ Error: {e}\n")

    # Shutdown
    await orchestrator.shutdown()


def run():
    """Console script entry point."""
    config_path = sys.argv[1] if len(sys.argv) > 1 else "config.yaml"
    try:
        asyncio.run(main(config_path))
    except KeyboardInterrupt:
        print("\n\n👋 Goodbye!")


if __name__ == "__main__":
    run()
