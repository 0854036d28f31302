#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DiffDrive Core 安装脚本

安装方法:
    # 可编辑安装 (推荐开发时使用)
    pip install -e .

    # 带测试依赖
    pip install -e .[test]
"""

from setuptools import setup, find_packages

setup(
    name='diffdrive-core',
    version='1.0.0',
    author='DiffDrive Core Team',
    description='差速驱动机器人的位姿估计与目标跟踪控制核心 (带单位类型、时间缓冲区与 EKF)',

    # 自动查找包
    packages=find_packages(include=['diffdrive_core', 'diffdrive_core.*']),

    # 依赖
    install_requires=[
        'numpy>=1.20.0',
        'scipy>=1.7.0',
        'PyYAML>=5.4.0',
    ],

    # 测试依赖
    extras_require={
        'test': ['pytest>=6.0'],
    },

    # Python 版本要求
    python_requires='>=3.8',

    # 包含数据文件
    include_package_data=True,
    zip_safe=False,
)
