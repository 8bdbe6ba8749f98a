#!/usr/bin/env python3
"""
LLM Merge - Basic Usage Example

Simple example showing how to use the orchestrator programmatically.
"""

import asyncio


async def main():
    # Import after making sure llm_merge package is available
    from llm_merge import MergeOrchestrator, load_config, AllModelsFailedError

    # Load configuration
    config = load_config("config.yaml")

    # Initialize the orchestrator
    orchestrator = MergeOrchestrator.from_config(config)
    await orchestrator.initialize()

    print("🔀  LLM Merge initialized!")
    print(f"Models: {', '.join(orchestrator.registry.ids)}\n")

    prompt = "What are the three laws of robotics?"

    print(f"Prompt: {prompt}\n")
    print("Querying models...\n")

    try:
        result = await orchestrator.merge(prompt, deadline=60)
    except AllModelsFailedError as e:
        print(f"Every model failed: {e}")
        await orchestrator.shutdown()
        return

    print("="*60)
    print(f"MERGED ANSWER (from {result.primary_model}):")
    print("="*60)
    print(result.final_content)
    print()
    print(f"Consensus: {result.consensus_score:.1%}")
    for candidate in result.diagnostics:
        status = "ok" if candidate.succeeded else candidate.error.value
        print(f"  {candidate.model_id}: {status}, weight {result.weights.get(candidate.model_id):.2f}")
    print("="*60)

    # Cleanup
    await orchestrator.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
