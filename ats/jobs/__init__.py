from ats.jobs.models import Application, Job, JobDetail, JobNote, JobOwner, JobRate

__all__ = ["Application", "Job", "JobDetail", "JobNote", "JobOwner", "JobRate"]
