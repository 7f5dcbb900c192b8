from fastapi import Depends

from safehire.services.applications import ApplicationLifecycleManager
from safehire.services.companies import CompanyVerifier
from safehire.services.jobs import JobLifecycleManager
from safehire.services.repository import get_store


def get_job_manager(store=Depends(get_store)) -> JobLifecycleManager:
    return JobLifecycleManager(store)


def get_application_manager(store=Depends(get_store)) -> ApplicationLifecycleManager:
    return ApplicationLifecycleManager(store)


def get_company_verifier(jobs: JobLifecycleManager = Depends(get_job_manager)) -> CompanyVerifier:
    return CompanyVerifier(jobs)
