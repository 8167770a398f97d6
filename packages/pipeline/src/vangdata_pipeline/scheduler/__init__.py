"""
vangdata_pipeline.scheduler — hourly automation scheduler.

    from vangdata_pipeline.scheduler.automation import AutomationScheduler

    result = await AutomationScheduler().tick()
    print(result.ran, result.skipped, result.failed)
"""
